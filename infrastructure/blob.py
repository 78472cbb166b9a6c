# ============================================================================
# BLOB REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Azure Blob Storage repository
# PURPOSE: Centralized blob access for generated view images
# EXPORTS: IBlobRepository, BlobRepository
# DEPENDENCIES: azure-storage-blob, azure-identity, config
# ============================================================================
"""
Blob Storage Repository - Central Authentication Point.

Single point of authentication for blob operations. Generated view images
are written here and served back by URL.

Authentication:
    - STORAGE_CONNECTION_STRING when set (local development, Azurite)
    - DefaultAzureCredential otherwise (managed identity in Azure)

Usage:
    from infrastructure.factory import RepositoryFactory

    blob_repo = RepositoryFactory.create_blob_repository()
    info = blob_repo.write_blob('product-images', 'uploads/p1/x.png', data,
                                content_type='image/png')
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, BinaryIO, Union

from azure.storage.blob import (
    BlobServiceClient,
    ContainerClient,
    ContentSettings,
)
from azure.identity import DefaultAzureCredential
from azure.core.exceptions import ResourceNotFoundError

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "BlobRepository")


# ============================================================================
# BLOB REPOSITORY INTERFACE
# ============================================================================

class IBlobRepository(ABC):
    """
    Interface for blob storage operations.

    Enables dependency injection and in-memory fakes in tests.
    """

    @abstractmethod
    def write_blob(self, container: str, blob_path: str, data: Union[bytes, BinaryIO],
                   overwrite: bool = True, content_type: str = "application/octet-stream",
                   metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Write blob from bytes or stream"""
        pass

    @abstractmethod
    def delete_blob(self, container: str, blob_path: str) -> bool:
        """Delete a blob"""
        pass


# ============================================================================
# BLOB REPOSITORY IMPLEMENTATION
# ============================================================================

class BlobRepository(IBlobRepository):
    """
    Centralized blob storage repository with managed authentication.

    Singleton: one BlobServiceClient per process, container clients cached.

    Usage:
        blob_repo = BlobRepository.instance()
    """

    _instance: Optional['BlobRepository'] = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, connection_string: Optional[str] = None, storage_account: Optional[str] = None):
        """
        Initialize once per process.

        Args:
            connection_string: Storage connection string (overrides credential auth)
            storage_account: Storage account name (default config.storage.account_name)
        """
        if self._initialized:
            return

        from config import get_config
        storage = get_config().storage
        connection_string = connection_string or storage.connection_string

        if connection_string:
            logger.info("Initializing BlobRepository with connection string")
            self.blob_service = BlobServiceClient.from_connection_string(connection_string)
            self.storage_account = self.blob_service.account_name
            self.credential = None
        else:
            self.storage_account = storage_account or storage.account_name
            account_url = f"https://{self.storage_account}.blob.core.windows.net"
            logger.info(f"Initializing BlobRepository with DefaultAzureCredential for account: {self.storage_account}")
            self.credential = DefaultAzureCredential()
            self.blob_service = BlobServiceClient(account_url=account_url, credential=self.credential)

        self._container_clients: Dict[str, ContainerClient] = {}
        BlobRepository._initialized = True
        logger.info(f"✅ BlobRepository initialized for account: {self.storage_account}")

    @classmethod
    def instance(cls, connection_string: Optional[str] = None, storage_account: Optional[str] = None) -> 'BlobRepository':
        """Get singleton instance."""
        if cls._instance is None or not cls._initialized:
            cls._instance = cls(connection_string=connection_string, storage_account=storage_account)
        return cls._instance

    def _get_container_client(self, container: str) -> ContainerClient:
        """Get or create cached container client."""
        if container not in self._container_clients:
            self._container_clients[container] = self.blob_service.get_container_client(container)
            logger.debug(f"Created new container client for: {container}")
        return self._container_clients[container]

    # ========================================================================
    # CORE BLOB OPERATIONS
    # ========================================================================

    def write_blob(self, container: str, blob_path: str, data: Union[bytes, BinaryIO],
                   overwrite: bool = True, content_type: str = "application/octet-stream",
                   metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Write blob from bytes or stream.

        Returns:
            Dict with url, container, blob_path, size, etag, last_modified
        """
        blob_client = self._get_container_client(container).get_blob_client(blob_path)
        logger.debug(f"Writing blob: {container}/{blob_path} (overwrite={overwrite})")

        try:
            blob_client.upload_blob(
                data,
                overwrite=overwrite,
                content_settings=ContentSettings(content_type=content_type),
                metadata=metadata or {}
            )
            properties = blob_client.get_blob_properties()
        except Exception as e:
            logger.error(f"Failed to write blob {container}/{blob_path}: {e}")
            raise

        logger.info(f"✅ Wrote blob: {container}/{blob_path} ({properties.size} bytes)")
        return {
            'url': blob_client.url,
            'container': container,
            'blob_path': blob_path,
            'size': properties.size,
            'etag': properties.etag,
            'last_modified': properties.last_modified.isoformat() if properties.last_modified else None
        }

    def delete_blob(self, container: str, blob_path: str) -> bool:
        """
        Delete a blob.

        Returns:
            True if deleted, False if not found
        """
        blob_client = self._get_container_client(container).get_blob_client(blob_path)
        try:
            blob_client.delete_blob()
        except ResourceNotFoundError:
            logger.warning(f"Blob not found for deletion: {container}/{blob_path}")
            return False
        logger.info(f"Deleted blob: {container}/{blob_path}")
        return True


__all__ = ['IBlobRepository', 'BlobRepository']
