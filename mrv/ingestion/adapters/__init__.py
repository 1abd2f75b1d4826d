"""Source-format ingestion adapters."""

from .base import FormatAdapter, REPLACE_IF_NEWER, UpsertResult, ValidationResult
from .global_sector import GlobalSectorAdapter
from .operator_generic import OperatorGenericAdapter

__all__ = [
    "FormatAdapter",
    "GlobalSectorAdapter",
    "OperatorGenericAdapter",
    "REPLACE_IF_NEWER",
    "UpsertResult",
    "ValidationResult",
]
