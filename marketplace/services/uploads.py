"""
Marketplace Backend — Image Upload Validation
==============================================

What:  The typed value for an uploaded image, its validation rules, and the
       object-key scheme used in the store.
Why:   Images are validated while the request is decoded, before any
       transaction starts; only infrastructure failures can happen after commit.
How:   Extension and size checks record messages on the request's Validator;
       keys are generated from a prefix, the date and a UUID, never from the
       client's filename.

Key Layout:
    services/2024/01/15/3f2b...c9.jpg
    staff/2024/01/15/8a11...04.png
    providers/logos/2024/01/15/...

    Why UUID names: no user input in the key (no traversal, no collisions
    between concurrent uploads of "photo.jpg").
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from marketplace.validator import Validator

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


@dataclass(frozen=True)
class ImageUpload:
    """An image read out of a multipart form."""

    filename: str
    content: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES.get(self.extension, "application/octet-stream")

    @property
    def size(self) -> int:
        return len(self.content)


def validate_image(v: Validator, key: str, image: ImageUpload, max_bytes: int) -> None:
    """Record the first problem with one image under `key`."""
    v.check(image.size > 0, key, f"file {image.filename!r} is empty")
    v.check(
        image.extension in ALLOWED_EXTENSIONS,
        key,
        f"file {image.filename!r} has an unsupported type; allowed: "
        + ", ".join(sorted(ext.lstrip(".") for ext in ALLOWED_EXTENSIONS)),
    )
    v.check(
        image.size <= max_bytes,
        key,
        f"file {image.filename!r} must not be larger than {max_bytes // (1024 * 1024)}MB",
    )


def validate_images(
    v: Validator,
    key: str,
    images: Sequence[ImageUpload],
    max_bytes: int,
    max_count: int,
) -> None:
    v.check(len(images) <= max_count, key, f"cannot upload more than {max_count} images")
    for image in images:
        validate_image(v, key, image, max_bytes)


def build_object_key(prefix: str, image: ImageUpload) -> str:
    """
    What:    Creates <prefix>/YYYY/MM/DD/<uuid><ext>.
    Why:     Date directories spread objects out and make clean-up by period easy.
    """
    now = datetime.now(timezone.utc)
    return f"{prefix}/{now:%Y/%m/%d}/{uuid.uuid4().hex}{image.extension}"
