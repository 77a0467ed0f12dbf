#!/usr/bin/env python3

"""Upload one image file through an upload session and print the result."""

import argparse
import json
import mimetypes
import sys
from pathlib import Path

from image_upload.common.config import get_settings
from image_upload.common.logging import setup_logging
from image_upload.domain.models import Blob
from image_upload.services.registry import (
    SessionRegistry,
    StorageBackendNotConfiguredError,
)
from image_upload.services.session_machine import Stage


def _load_blob(path: Path, mime_type: str | None) -> Blob:
    guessed, _ = mimetypes.guess_type(path.name)
    return Blob(
        name=path.name,
        data=path.read_bytes(),
        mime_type=mime_type or guessed or "application/octet-stream",
    )


def main(argv: list[str] | None = None, registry: SessionRegistry | None = None) -> int:
    parser = argparse.ArgumentParser(description="Upload an image to S3.")
    parser.add_argument("path", type=Path, help="Image file to upload.")
    parser.add_argument("--folder", help="Target folder (defaults to UPLOAD_DEFAULT_FOLDER).")
    parser.add_argument("--mime-type", help="Override the guessed MIME type.")
    args = parser.parse_args(argv)

    setup_logging("WARNING")
    if not args.path.is_file():
        print(json.dumps({"success": False, "error": f"No such file: {args.path}"}))
        return 1

    if registry is None:
        registry = SessionRegistry(settings=get_settings())
    try:
        session = registry.create(folder=args.folder)
    except StorageBackendNotConfiguredError as exc:
        print(json.dumps({"success": False, "error": str(exc)}))
        return 1

    blob = _load_blob(args.path, args.mime_type)
    state = session.select_blob(blob, crop=False)
    if state.stage is not Stage.STAGED:
        print(json.dumps({"success": False, "error": "Please select an image file"}))
        return 1

    state = session.upload()
    result = state.result
    payload = {
        "success": bool(result and result.success),
        "key": state.uploaded_key,
        "url": state.published_url,
        "error": result.error if result else None,
    }
    print(json.dumps(payload, ensure_ascii=False))
    return 0 if payload["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
