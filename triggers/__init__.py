"""
Triggers Package.

Azure Functions HTTP trigger implementations.

HTTP Endpoints:
    POST /api/products/{product_id}/views/{view_type}/regenerate
    POST /api/products/{product_id}/revisions/initial
    GET  /api/products/{product_id}/revisions

Exports:
    Base classes for HTTP endpoints
"""

# Only import base classes to avoid initialization at import time
# Trigger instances should be imported directly from their modules
from .http_base import BaseHttpTrigger, ProductTrigger, AuthenticationRequired

__all__ = [
    'BaseHttpTrigger',
    'ProductTrigger',
    'AuthenticationRequired',
]
