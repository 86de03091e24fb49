import logging
import os
import random
import time
from typing import List, Optional

from fastapi import UploadFile

import config

logger = logging.getLogger(__name__)

PRODUCT_SUBDIR = "products"


class UploadRejected(ValueError):
    pass


def product_image_dir() -> str:
    return os.path.join(config.UPLOAD_DIR, PRODUCT_SUBDIR)


def _unique_name(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return f"product-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


def save_product_images(files: Optional[List[UploadFile]]) -> List[str]:
    """Store uploaded product images and return their public URLs in upload order.

    Every file is checked before anything is written, so a rejected request
    leaves no partial uploads behind.
    """
    files = [f for f in files or [] if f is not None and f.filename]
    if not files:
        return []
    if len(files) > config.MAX_UPLOAD_FILES:
        raise UploadRejected(f"At most {config.MAX_UPLOAD_FILES} images are allowed per product")

    payloads = []
    for upload in files:
        if not (upload.content_type or "").startswith("image/"):
            raise UploadRejected(f"Only images are allowed ({upload.filename} is {upload.content_type})")
        data = upload.file.read(config.MAX_UPLOAD_BYTES + 1)
        if len(data) > config.MAX_UPLOAD_BYTES:
            raise UploadRejected(f"{upload.filename} exceeds the {config.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit")
        payloads.append((upload.filename, data))

    target_dir = product_image_dir()
    os.makedirs(target_dir, exist_ok=True)
    urls = []
    for filename, data in payloads:
        name = _unique_name(filename)
        with open(os.path.join(target_dir, name), "wb") as fh:
            fh.write(data)
        urls.append(f"/uploads/{PRODUCT_SUBDIR}/{name}")
    logger.info(f"Saved {len(urls)} product image(s) to {target_dir}")
    return urls


def discard_product_images(urls: List[str]) -> None:
    """Remove files saved by ``save_product_images`` for a request that then failed."""
    for url in urls:
        path = os.path.join(product_image_dir(), os.path.basename(url))
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove orphan upload {path}: {e}")
