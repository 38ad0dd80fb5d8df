import logging
import os
import random
import time
from pathlib import Path

from fastapi import UploadFile

from phonehub.config import MAX_IMAGE_SIZE, UPLOAD_ROOT
from phonehub.exceptions import OfferValidationError

logger = logging.getLogger(__name__)

# Content type -> stored extension
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

URL_PREFIX = "/uploads/special-offers"


class ImageStorage:
    """
    Disk storage for offer images. Files are not part of the database transaction:
    a crash between the two writes can leave an orphaned file, which is accepted.
    """

    def __init__(self, root: str | Path, url_prefix: str = URL_PREFIX, max_size: int = MAX_IMAGE_SIZE):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_size = max_size

    def save(self, upload: UploadFile) -> str:
        """Store an uploaded image and return its public path."""
        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            raise OfferValidationError("Invalid file type. Only JPEG, PNG, GIF, and WebP are allowed.")

        content = upload.file.read(self.max_size + 1)
        if len(content) > self.max_size:
            raise OfferValidationError(f"Image exceeds the {self.max_size // (1024 * 1024)}MB limit")

        suffix = ALLOWED_IMAGE_TYPES[upload.content_type]
        filename = f"offer-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"

        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / filename).write_bytes(content)
        logger.info("Stored offer image %s", filename)

        return f"{self.url_prefix}/{filename}"

    def delete(self, url: str | None) -> bool:
        """Best-effort removal; a failure is logged and never raised."""
        if not url:
            return False

        path = self.root / os.path.basename(url)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Offer image %s already gone", path)
            return False
        except OSError as e:
            logger.error("Error deleting offer image %s: %s", path, e)
            return False
        return True


def get_image_storage() -> ImageStorage:
    return ImageStorage(Path(UPLOAD_ROOT) / "special-offers")
