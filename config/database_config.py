"""
PostgreSQL Database Configuration.

Provides configuration for the application database holding revision batches,
credit ledger rows, credit reservations, products, brand profiles and the AI
operation log.

Exports:
    DatabaseConfig: App database configuration
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import DatabaseDefaults, AzureDefaults


# ============================================================================
# DATABASE CONFIGURATION
# ============================================================================

class DatabaseConfig(BaseModel):
    """
    PostgreSQL configuration with managed identity support.

    Supports both password-based and Azure Managed Identity authentication.
    """

    host: str = Field(
        ...,
        description="PostgreSQL server hostname",
        examples=["multiview.postgres.database.azure.com"]
    )

    port: int = Field(
        default=DatabaseDefaults.PORT,
        description="PostgreSQL server port number"
    )

    user: Optional[str] = Field(
        default=None,
        description="""PostgreSQL username for password-based authentication.

        Only used for password authentication (local development/troubleshooting).
        With managed identity the user is DB_ADMIN_MANAGED_IDENTITY_NAME.
        """
    )

    password: Optional[str] = Field(
        default=None,
        repr=False,
        description="PostgreSQL password from POSTGIS_PASSWORD environment variable."
    )

    database: str = Field(
        ...,
        description="PostgreSQL database name",
        examples=["multiview"]
    )

    app_schema: str = Field(
        default=DatabaseDefaults.APP_SCHEMA,
        description="PostgreSQL schema for application tables (revisions, credits, products)"
    )

    use_managed_identity: bool = Field(
        default=False,
        description="""Enable Azure Managed Identity for passwordless PostgreSQL authentication.

        When True an Entra access token is acquired per connection and used as
        the password; tokens are refreshed by the Azure SDK.
        Environment Variable: USE_MANAGED_IDENTITY
        """
    )

    managed_identity_admin_name: Optional[str] = Field(
        default=AzureDefaults.MANAGED_IDENTITY_NAME,
        description="PostgreSQL role name matching the managed identity (case-sensitive)"
    )

    managed_identity_client_id: Optional[str] = Field(
        default=None,
        description="Client ID of the user-assigned managed identity (None = system-assigned)"
    )

    connection_timeout_seconds: int = Field(
        default=DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS,
        description="Connection timeout in seconds"
    )

    azure_website_name: Optional[str] = Field(
        default=None,
        description="Function App name (auto-detected from WEBSITE_SITE_NAME, set by Azure)"
    )

    @property
    def effective_identity_name(self) -> str:
        """
        Get the effective identity name for managed identity authentication.

        Priority:
        1. managed_identity_admin_name (explicitly configured)
        2. azure_website_name (for system-assigned identity in Azure)
        3. AzureDefaults.MANAGED_IDENTITY_NAME (fallback)
        """
        if self.managed_identity_admin_name:
            return self.managed_identity_admin_name
        if self.azure_website_name:
            return self.azure_website_name
        return AzureDefaults.MANAGED_IDENTITY_NAME

    @property
    def connection_string(self) -> str:
        """
        Build PostgreSQL connection string.

        For managed identity the user and token are appended by
        PostgreSQLRepository._get_connection_string().
        """
        if self.use_managed_identity:
            return f"host={self.host} port={self.port} dbname={self.database}"

        if not self.user:
            raise ValueError("POSTGIS_USER is required for password authentication")
        password_part = f" password={self.password}" if self.password else ""
        return f"host={self.host} port={self.port} dbname={self.database} user={self.user}{password_part}"

    def debug_dict(self) -> dict:
        """Debug output with masked password."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "password": "***MASKED***" if self.password else None,
            "managed_identity": self.use_managed_identity,
            "managed_identity_admin_name": self.managed_identity_admin_name,
            "managed_identity_client_id": self.managed_identity_client_id[:8] + "..." if self.managed_identity_client_id else None,
            "app_schema": self.app_schema,
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables.

        POSTGIS_USER is optional when using managed identity authentication.
        """
        return cls(
            host=os.environ["POSTGIS_HOST"],
            port=int(os.environ.get("POSTGIS_PORT", str(DatabaseDefaults.PORT))),
            user=os.environ.get("POSTGIS_USER"),
            password=os.environ.get("POSTGIS_PASSWORD"),
            database=os.environ["POSTGIS_DATABASE"],
            app_schema=os.environ.get("APP_SCHEMA", DatabaseDefaults.APP_SCHEMA),
            use_managed_identity=os.environ.get("USE_MANAGED_IDENTITY", "false").lower() == "true",
            managed_identity_admin_name=os.environ.get("DB_ADMIN_MANAGED_IDENTITY_NAME", AzureDefaults.MANAGED_IDENTITY_NAME),
            managed_identity_client_id=os.environ.get("DB_ADMIN_MANAGED_IDENTITY_CLIENT_ID"),
            connection_timeout_seconds=int(os.environ.get("DB_CONNECTION_TIMEOUT", str(DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS))),
            azure_website_name=os.environ.get("WEBSITE_SITE_NAME")
        )
