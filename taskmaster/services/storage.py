import io
import logging
from dataclasses import dataclass

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi.concurrency import run_in_threadpool

from taskmaster.config import Settings
from taskmaster.exceptions import StorageError

logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    public_id: str
    url: str
    size: int


def resource_type_for(mime_type: str | None) -> str:
    """Cloudinary resource type for a MIME type. PDFs are served as images."""
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/") or mime_type == "application/pdf":
        return "image"
    if mime_type.startswith("video/") or mime_type.startswith("audio/"):
        return "video"
    return "raw"


class CloudStorage:
    """Thin async wrapper over the blocking Cloudinary SDK."""

    def __init__(self, settings: Settings):
        self.options = {
            "cloud_name": settings.CLOUDINARY_CLOUD_NAME,
            "api_key": settings.CLOUDINARY_API_KEY,
            "api_secret": settings.CLOUDINARY_API_SECRET,
            "secure": True,
        }

    async def upload(
        self,
        data: bytes,
        folder: str,
        resource_type: str = "auto",
        tags: list[str] | None = None,
    ) -> StoredObject:
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                io.BytesIO(data),
                folder=folder,
                resource_type=resource_type,
                tags=tags or [],
                **self.options,
            )
        except CloudinaryError as e:
            logger.error("[STORAGE] Upload to %s failed: %s", folder, e)
            raise StorageError("File upload failed")

        logger.info("[STORAGE] Uploaded %s (%s bytes)", result["public_id"], result.get("bytes"))
        return StoredObject(
            public_id=result["public_id"],
            url=result["secure_url"],
            size=result.get("bytes") or len(data),
        )

    async def delete(self, public_id: str, resource_type: str = "image") -> bool:
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.destroy,
                public_id,
                resource_type=resource_type,
                invalidate=True,
                **self.options,
            )
        except CloudinaryError as e:
            logger.error("[STORAGE] Delete of %s failed: %s", public_id, e)
            raise StorageError("File delete failed")

        deleted = result.get("result") == "ok"
        if not deleted:
            logger.warning("[STORAGE] %s was not found in storage", public_id)
        return deleted
