# ============================================================================
# PRODUCT REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Product and brand profile reads
# PURPOSE: Resolve product ownership and logo candidates for regeneration
# EXPORTS: ProductRepository
# DEPENDENCIES: psycopg, core.models.product
# ============================================================================
"""
Product Repository.

Read-only access to app.products joined with the applied brand profile.
Logo candidates live in the product's metadata JSON:

    metadata.logo               - product default logo
    metadata.chatUploadedImage  - image uploaded in the current chat turn
    metadata.chatImageToolType  - what that upload is for (logo, sketch, ...)
"""

import json
from typing import Any, Dict, Optional

from psycopg import sql

from util_logger import LoggerFactory, ComponentType
from core.errors import ErrorCode
from core.models.product import LogoCandidates, ProductContext
from exceptions import ContextResolutionError
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ProductRepository")


class ProductRepository(PostgreSQLRepository):
    """
    Repository for product context.

    Tables: app.products, app.brand_profiles
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.table = "products"
        self.brand_table = "brand_profiles"
        self.schema = self.schema_name

    def get_product_context(self, product_id: str, user_id: str) -> ProductContext:
        """
        Load ownership and logo candidates for a product.

        Products owned by another user are reported as not found.

        Raises:
            ContextResolutionError: Product missing or not owned by user_id
        """
        query = sql.SQL("""
            SELECT p.id, p.user_id, p.metadata, p.brand_profile_applied,
                   p.brand_profile_id, b.logo_url AS brand_logo_url
            FROM {schema}.{products} p
            LEFT JOIN {schema}.{brands} b
                   ON p.brand_profile_applied AND b.id = p.brand_profile_id
            WHERE p.id = %s
        """).format(
            schema=sql.Identifier(self.schema),
            products=sql.Identifier(self.table),
            brands=sql.Identifier(self.brand_table)
        )
        row = self._execute_query(query, (product_id,), fetch='one')

        if not row or row['user_id'] != user_id:
            raise ContextResolutionError(
                f"Product {product_id} not found",
                error_code=ErrorCode.PRODUCT_NOT_FOUND,
                product_id=product_id
            )
        return self._row_to_model(row)

    def _row_to_model(self, row: Dict[str, Any]) -> ProductContext:
        metadata = row.get('metadata') or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)

        brand_logo: Optional[str] = row.get('brand_logo_url') if row.get('brand_profile_applied') else None

        return ProductContext(
            product_id=row['id'],
            user_id=row['user_id'],
            brand_profile_id=row.get('brand_profile_id'),
            logo_candidates=LogoCandidates(
                chat_uploaded_logo=metadata.get('chatUploadedImage'),
                chat_image_tool_type=metadata.get('chatImageToolType'),
                product_logo=metadata.get('logo'),
                brand_profile_logo=brand_logo,
            ),
        )


__all__ = ['ProductRepository']
