"""
Per-operation settings models.

Each OperationType has exactly one options model. Field aliases match the
multipart form field names sent by the web client (camelCase).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from pixdrop_core.config import settings
from pixdrop_core.domain.exceptions import InvalidUploadError
from pixdrop_core.jobs.models import OperationType


class _Options(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class CompressOptions(_Options):
    quality: int = Field(default_factory=lambda: settings.DEFAULT_COMPRESS_QUALITY, ge=1, le=100)


class ResizeOptions(_Options):
    resize_mode: Literal["pixels", "percentage"] = Field("pixels", alias="resizeMode")
    width: Optional[int] = Field(None, ge=1, le=20000)
    height: Optional[int] = Field(None, ge=1, le=20000)
    percentage: Optional[float] = Field(None, gt=0, le=1000)
    maintain_aspect_ratio: bool = Field(True, alias="maintainAspectRatio")
    do_not_enlarge: bool = Field(False, alias="doNotEnlarge")
    preserve_quality: bool = Field(False, alias="preserveQuality")

    @model_validator(mode="after")
    def _check_target(self) -> "ResizeOptions":
        if self.resize_mode == "percentage" and self.percentage is None:
            raise ValueError("percentage is required for percentage resize")
        if self.resize_mode == "pixels" and self.width is None and self.height is None:
            raise ValueError("width or height is required for pixel resize")
        return self


class CropOptions(_Options):
    left: int = Field(0, ge=0)
    top: int = Field(0, ge=0)
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"


class ConvertOptions(_Options):
    target_format: ImageFormat = Field(ImageFormat.JPEG, alias="targetFormat")
    quality: int = Field(90, ge=1, le=100)


OperationOptions = Union[CompressOptions, ResizeOptions, CropOptions, ConvertOptions]

OPTIONS_MODELS: dict[OperationType, type[_Options]] = {
    OperationType.COMPRESS: CompressOptions,
    OperationType.RESIZE: ResizeOptions,
    OperationType.CROP: CropOptions,
    OperationType.CONVERT: ConvertOptions,
}


def parse_options(operation: OperationType, raw: dict[str, Any]) -> OperationOptions:
    """
    Validate form values into the options model for ``operation``.

    Blank values are treated as absent.

    Raises:
        InvalidUploadError: If the values do not validate.
    """
    values = {key: value for key, value in raw.items() if value not in (None, "")}
    model = OPTIONS_MODELS[operation]
    try:
        return model.model_validate(values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidUploadError(f"Invalid {operation.value} settings: {problems}", cause=e) from e
