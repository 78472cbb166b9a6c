"""
Infrastructure Package - Lazy Loading Implementation.

Repository and adapter implementations with lazy loading, so importing the
package never reads configuration, authenticates, or opens connections.

Azure Functions imports function_app.py on every cold start, before the
host has finished initializing. Anything done at import time may run
before environment variables and managed identity tokens are ready.
__getattr__ defers each import until the name is first used, which is
normally inside a trigger.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .factory import RepositoryFactory as _RepositoryFactory
    from .postgresql import PostgreSQLRepository as _PostgreSQLRepository
    from .base import BaseRepository as _BaseRepository
    from .revision_repository import RevisionRepository as _RevisionRepository
    from .credit_repository import CreditRepository as _CreditRepository
    from .product_repository import ProductRepository as _ProductRepository
    from .ai_log_repository import AIOperationLogRepository as _AIOperationLogRepository
    from .blob import BlobRepository as _BlobRepository
    from .blob import IBlobRepository as _IBlobRepository
    from .gemini_client import GeminiImageClient as _GeminiImageClient
    from .gemini_client import ReferenceImageLoader as _ReferenceImageLoader


_LAZY_IMPORTS = {
    "RepositoryFactory": ".factory",
    "PostgreSQLRepository": ".postgresql",
    "BaseRepository": ".base",
    "RevisionRepository": ".revision_repository",
    "CreditRepository": ".credit_repository",
    "ProductRepository": ".product_repository",
    "AIOperationLogRepository": ".ai_log_repository",
    "BlobRepository": ".blob",
    "IBlobRepository": ".blob",
    "GeminiImageClient": ".gemini_client",
    "ReferenceImageLoader": ".gemini_client",
}


def __getattr__(name: str):
    """
    Lazy import mechanism - only imports when actually accessed.
    """
    module_name = _LAZY_IMPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    import importlib
    module = importlib.import_module(module_name, __name__)
    return getattr(module, name)


__all__ = list(_LAZY_IMPORTS)
