"""JSON Schema validation."""

from .schema_registry import (
    CRITICAL_SCHEMAS,
    CompiledValidator,
    SchemaRegistry,
    SchemaRegistryError,
    ValidationError,
    ValidationReport,
)

__all__ = [
    "CRITICAL_SCHEMAS",
    "CompiledValidator",
    "SchemaRegistry",
    "SchemaRegistryError",
    "ValidationError",
    "ValidationReport",
]
