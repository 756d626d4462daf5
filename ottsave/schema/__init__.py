from .fields import FieldKind, FieldDescriptor, Schema, LIST_FLAG
from .matrix import (
    SchemaSet, VersionRange, VersionCompatibilityMatrix, DEFAULT_MATRIX,
)

__all__ = [
    "FieldKind", "FieldDescriptor", "Schema", "LIST_FLAG",
    "SchemaSet", "VersionRange", "VersionCompatibilityMatrix", "DEFAULT_MATRIX",
]
