"""
Pillow-backed image transformers.

One transformer per OperationType, each a black box from input bytes to
output bytes. Transformers are synchronous and CPU bound; the processing
invoker runs them in a worker thread under a timeout.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from pixdrop_core.domain.exceptions import ProcessingFailure
from pixdrop_core.jobs import OperationType
from pixdrop_core.jobs.options import (
    CompressOptions,
    ConvertOptions,
    CropOptions,
    ResizeOptions,
)

from ..protocols import ImageTransformer
from .local_artifact_store import DEFAULT_EXTENSION, artifact_extension

FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
    "GIF": ".gif",
}

EXTENSION_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".jpe": "JPEG",
    ".jfif": "JPEG",
    ".png": "PNG",
    ".webp": "WEBP",
    ".gif": "GIF",
}


@dataclass(frozen=True)
class TransformResult:
    """Output of one transform."""

    data: bytes
    format: str
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


def _open(content: bytes) -> tuple[Image.Image, str]:
    """Decode ``content`` with EXIF orientation applied."""
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except Image.DecompressionBombError as e:
        raise ProcessingFailure("Image dimensions are too large", cause=e) from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ProcessingFailure("Unsupported or corrupt image", message_debug=str(e), cause=e) from e

    source_format = image.format or "JPEG"
    image = ImageOps.exif_transpose(image)
    return image, source_format


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info)


def _flatten(image: Image.Image) -> Image.Image:
    """RGB copy of ``image``, transparent areas composited onto white."""
    if _has_alpha(image):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _encode(image: Image.Image, fmt: str, quality: int = 85) -> TransformResult:
    """Encode ``image`` as ``fmt``; unknown formats fall back to JPEG."""
    if fmt not in FORMAT_EXTENSIONS:
        fmt = "JPEG"

    buffer = io.BytesIO()
    if fmt == "JPEG":
        _flatten(image).save(buffer, format="JPEG", quality=quality, optimize=True, progressive=True)
    elif fmt == "PNG":
        image.save(buffer, format="PNG", optimize=True)
    elif fmt == "WEBP":
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if _has_alpha(image) else "RGB")
        image.save(buffer, format="WEBP", quality=quality, method=4)
    else:
        image.save(buffer, format="GIF", optimize=True)

    return TransformResult(data=buffer.getvalue(), format=fmt, width=image.width, height=image.height)


def _quantize(image: Image.Image, colors: int) -> Image.Image:
    """Palette copy of ``image``; alpha survives through the octree quantizer."""
    if _has_alpha(image):
        return image.convert("RGBA").quantize(colors=colors, method=Image.Quantize.FASTOCTREE)
    return image.convert("RGB").quantize(colors=colors)


class CompressTransformer:
    """
    Lossy re-encode aimed at a smaller file.

    Alpha PNGs stay PNG (palette); WebP stays WebP; everything else
    becomes progressive JPEG.
    """

    def apply(self, content: bytes, settings: CompressOptions, aggressive: bool = False) -> TransformResult:
        image, source_format = _open(content)

        if source_format == "PNG" and _has_alpha(image):
            return _encode(_quantize(image, 64 if aggressive else 256), "PNG")

        if source_format == "WEBP":
            quality = 20 if aggressive else max(20, settings.quality - 20)
            return _encode(image, "WEBP", quality)

        quality = 40 if aggressive else min(75, max(20, settings.quality - 20))
        return _encode(image, "JPEG", quality)


class ResizeTransformer:
    """Scale to a pixel box or by percentage, in the source format."""

    def apply(self, content: bytes, settings: ResizeOptions, aggressive: bool = False) -> TransformResult:
        image, source_format = _open(content)
        quality = 95 if settings.preserve_quality else 85

        target = target_size(image.size, settings)
        if target is None:
            return _encode(image, source_format, quality)

        if settings.maintain_aspect_ratio:
            resized = ImageOps.contain(image, target, method=Image.Resampling.LANCZOS)
        else:
            resized = image.resize(target, Image.Resampling.LANCZOS)
        return _encode(resized, source_format, quality)


def target_size(source: tuple[int, int], settings: ResizeOptions) -> tuple[int, int] | None:
    """
    Target box for a resize, or None when the image is left as is.

    A missing pixel dimension follows the source aspect ratio. With
    ``do_not_enlarge`` any target larger than the source in either
    dimension skips the resize.
    """
    width, height = source

    if settings.resize_mode == "percentage":
        scale = settings.percentage / 100
        if settings.do_not_enlarge and scale > 1:
            return None
        return max(1, round(width * scale)), max(1, round(height * scale))

    target_w, target_h = settings.width, settings.height
    if target_w is None:
        target_w = max(1, round(width * target_h / height))
    if target_h is None:
        target_h = max(1, round(height * target_w / width))

    if settings.do_not_enlarge and (target_w > width or target_h > height):
        return None
    return target_w, target_h


class CropTransformer:
    """Extract a rectangle, clamped to the image bounds."""

    def apply(self, content: bytes, settings: CropOptions, aggressive: bool = False) -> TransformResult:
        image, source_format = _open(content)

        right = min(settings.left + settings.width, image.width)
        bottom = min(settings.top + settings.height, image.height)
        if settings.left >= right or settings.top >= bottom:
            raise ProcessingFailure(
                "Crop area is outside the image",
                message_debug=f"box=({settings.left},{settings.top},{right},{bottom}) size={image.size}",
            )

        cropped = image.crop((settings.left, settings.top, right, bottom))
        return _encode(cropped, source_format, 92)


class ConvertTransformer:
    """Re-encode into the requested target format."""

    def apply(self, content: bytes, settings: ConvertOptions, aggressive: bool = False) -> TransformResult:
        image, _ = _open(content)
        fmt = settings.target_format.value.upper()

        if fmt == "JPEG":
            image = _flatten(image)
        return _encode(image, fmt, settings.quality)


_TRANSFORMERS: dict[OperationType, ImageTransformer] = {
    OperationType.COMPRESS: CompressTransformer(),
    OperationType.RESIZE: ResizeTransformer(),
    OperationType.CROP: CropTransformer(),
    OperationType.CONVERT: ConvertTransformer(),
}


def get_transformer(operation: OperationType) -> ImageTransformer:
    """Transformer registered for ``operation``."""
    return _TRANSFORMERS[OperationType(operation)]


def output_extension(file_name: str, output_format: str) -> str:
    """
    Artifact extension for an output of ``output_format``.

    The client's extension is kept when it already names the output format;
    otherwise the format's canonical extension is used.
    """
    extension = artifact_extension(file_name)
    if EXTENSION_FORMATS.get(extension) == output_format:
        return extension
    return FORMAT_EXTENSIONS.get(output_format, DEFAULT_EXTENSION)
