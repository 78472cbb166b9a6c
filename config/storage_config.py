"""
Azure Blob Storage Configuration.

Storage for generated view images. A regenerated view is uploaded once and
its URL is written into the new revision batch; the blob is never rewritten.

Exports:
    StorageConfig: Blob storage configuration
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import StorageDefaults


class StorageConfig(BaseModel):
    """
    Azure Storage configuration for generated view uploads.

    Authentication:
        - STORAGE_CONNECTION_STRING set: connection-string auth (local dev, Azurite)
        - Otherwise: DefaultAzureCredential against account_url
    """

    account_name: str = Field(
        default=StorageDefaults.DEFAULT_ACCOUNT_NAME,
        description="Storage account name (Environment Variable: STORAGE_ACCOUNT_NAME)"
    )

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Optional connection string; takes precedence over managed identity"
    )

    uploads_container: str = Field(
        default=StorageDefaults.UPLOADS_CONTAINER,
        description="Container receiving generated view images"
    )

    upload_path_prefix: str = Field(
        default=StorageDefaults.UPLOAD_PATH_PREFIX,
        description="Blob path prefix inside the uploads container"
    )

    upload_preset: str = Field(
        default=StorageDefaults.UPLOAD_PRESET,
        description="Preset tag written to blob metadata (original = no resize)"
    )

    sas_expiry_hours: int = Field(
        default=StorageDefaults.SAS_EXPIRY_HOURS,
        ge=1,
        le=24,
        description="Lifetime of read SAS URLs for private containers"
    )

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    def debug_dict(self) -> dict:
        """Debug output with masked connection string."""
        return {
            "account_name": self.account_name,
            "connection_string": "***MASKED***" if self.connection_string else None,
            "uploads_container": self.uploads_container,
            "upload_path_prefix": self.upload_path_prefix,
            "upload_preset": self.upload_preset,
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            account_name=os.environ.get("STORAGE_ACCOUNT_NAME", StorageDefaults.DEFAULT_ACCOUNT_NAME),
            connection_string=os.environ.get("STORAGE_CONNECTION_STRING"),
            uploads_container=os.environ.get("UPLOADS_CONTAINER", StorageDefaults.UPLOADS_CONTAINER),
            upload_path_prefix=os.environ.get("UPLOAD_PATH_PREFIX", StorageDefaults.UPLOAD_PATH_PREFIX),
            upload_preset=os.environ.get("UPLOAD_PRESET", StorageDefaults.UPLOAD_PRESET),
            sas_expiry_hours=int(os.environ.get("SAS_EXPIRY_HOURS", str(StorageDefaults.SAS_EXPIRY_HOURS))),
        )
