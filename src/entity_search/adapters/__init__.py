"""Adapters layer - Repository implementations.

Abstracts index storage and retrieval behind the domain model.
"""

from .index_repository import (
    AbstractIndexRepository,
    SqliteIndexRepository,
)


__all__ = [
    "AbstractIndexRepository",
    "SqliteIndexRepository",
]
