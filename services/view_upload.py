# ============================================================================
# VIEW IMAGE UPLOADER
# ============================================================================
# STATUS: Service - Persist generated view images to blob storage
# PURPOSE: One immutable blob per generated view
# EXPORTS: ViewImageUploader
# DEPENDENCIES: infrastructure.blob, azure-core, config
# ============================================================================
"""
View Image Uploader.

Generated images land at:
    {uploads_container}/{upload_path_prefix}/{product_id}/{uuid}.{ext}

Every upload gets a fresh uuid, so a blob is never overwritten and an
older revision's URL keeps pointing at the image it was written with.
"""

import uuid
from typing import Optional

from azure.core.exceptions import AzureError

from util_logger import LoggerFactory, ComponentType
from config import StorageConfig, get_config
from core.models.generation import ImagePayload
from core.models.results import UploadedImage
from exceptions import UploadFailure

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ViewImageUploader")


class ViewImageUploader:
    """
    Upload generated view images.

    Usage:
        uploader = ViewImageUploader()
        uploaded = uploader.upload(product_id, generated.image)
    """

    def __init__(self, blob_repository=None, config: Optional[StorageConfig] = None):
        self.config = config or get_config().storage
        if blob_repository is None:
            from infrastructure.factory import RepositoryFactory
            blob_repository = RepositoryFactory.create_blob_repository()
        self.blob_repository = blob_repository

    def blob_path_for(self, product_id: str, image: ImagePayload) -> str:
        prefix = self.config.upload_path_prefix.strip("/")
        name = f"{product_id}/{uuid.uuid4().hex}.{image.extension}"
        return f"{prefix}/{name}" if prefix else name

    def upload(self, product_id: str, image: ImagePayload) -> UploadedImage:
        """
        Raises:
            UploadFailure: Storage rejected the write or returned no URL
        """
        container = self.config.uploads_container
        blob_path = self.blob_path_for(product_id, image)

        try:
            info = self.blob_repository.write_blob(
                container,
                blob_path,
                image.data,
                overwrite=False,
                content_type=image.mime_type,
                metadata={
                    'product_id': product_id,
                    'preset': self.config.upload_preset,
                    'preserve_original': 'true',
                },
            )
        except (AzureError, OSError, ValueError) as e:
            logger.error(f"❌ Upload failed for {container}/{blob_path}: {e}")
            raise UploadFailure(f"Failed to upload generated image: {e}", blob_path=blob_path) from e

        url = info.get('url') if info else None
        if not url:
            raise UploadFailure("Upload returned no URL", blob_path=blob_path)

        logger.info(f"📤 Uploaded generated view for {product_id}: {blob_path}")
        return UploadedImage(
            url=url,
            blob_path=blob_path,
            container=container,
            size=info.get('size') or len(image.data),
            etag=info.get('etag'),
        )

    def discard(self, uploaded: UploadedImage) -> bool:
        """
        Delete an upload that no revision row will reference.

        Returns False when the blob could not be removed, whatever the cause;
        the caller's original failure is what gets reported.
        """
        try:
            deleted = self.blob_repository.delete_blob(uploaded.container, uploaded.blob_path)
        except Exception as e:
            logger.warning(
                f"⚠️ Orphaned upload left in storage: {uploaded.container}/{uploaded.blob_path}: "
                f"{type(e).__name__}: {e}"
            )
            return False
        if deleted:
            logger.info(f"🗑️ Discarded uncommitted upload {uploaded.blob_path}")
        return deleted


__all__ = ['ViewImageUploader']
