"""
Core Database Schema Management Package.

Contains the app schema DDL and schema deployment.

Exports:
    build_app_schema_ddl, IndexBuilder, TABLE_NAMES: DDL composition
    SchemaManager, SchemaManagerFactory: Schema deployment utilities
"""

from .ddl import TABLE_NAMES, IndexBuilder, build_app_schema_ddl
from .deployer import (
    SchemaManager,
    SchemaManagerFactory,
    SchemaManagementError,
    InsufficientPrivilegesError,
)

__all__ = [
    'TABLE_NAMES',
    'IndexBuilder',
    'build_app_schema_ddl',
    'SchemaManager',
    'SchemaManagerFactory',
    'SchemaManagementError',
    'InsufficientPrivilegesError',
]
