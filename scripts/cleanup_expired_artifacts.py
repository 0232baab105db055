#!/usr/bin/env python3
"""
CLI utility to delete processed artifacts past their expiry.

Expired jobs are already refused by the download route; this reclaims the
storage and removes staged uploads left behind by interrupted requests.

Usage:
    python scripts/cleanup_expired_artifacts.py --grace-minutes 60
"""

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.jobs.factory import get_artifact_store, get_job_store, get_upload_area
from app.jobs.services.cleanup import sweep_expired_artifacts
from pixdrop_core.logging import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Delete expired processed artifacts")
    parser.add_argument(
        "--grace-minutes",
        type=int,
        default=None,
        help="Minutes past expiry before deletion (defaults to settings.SWEEP_GRACE_MINUTES)",
    )
    parser.add_argument(
        "--stale-minutes",
        type=int,
        default=None,
        help="Age of orphaned staged uploads (defaults to settings.UPLOAD_STALE_MINUTES)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=500,
        help="Max artifacts deleted per run",
    )
    args = parser.parse_args()

    setup_logging()
    result = sweep_expired_artifacts(
        job_store=get_job_store(),
        artifact_store=get_artifact_store(),
        upload_area=get_upload_area(),
        grace_minutes=args.grace_minutes,
        stale_minutes=args.stale_minutes,
        batch_size=args.batch_size,
    )
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
