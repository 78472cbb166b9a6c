"""
Core Domain Components.

Pure building blocks for the multiview revision pipeline, free of storage
and network dependencies.

Structure:
    errors.py: Error codes, retry classification, HTTP status mapping
    models/: Pure data structures (no business logic)
    logic/: Business logic separated from models (logo, prompt, revision building)
    schema/: Database DDL

Subpackages are imported explicitly by callers (``from core.models import ...``)
so that ``exceptions`` can depend on ``core.errors`` without import cycles.
"""
