"""Domain model for the search side table.

An ``IndexRecord`` is the normalized projection of one field of one source
record. It is both the write target of indexing and the read projection of
search, so it carries no behavior beyond identity.
"""

from typing import Annotated

from pydantic import Field
from pydantic.dataclasses import dataclass


@dataclass(eq=False)
class IndexRecord:
    """One indexed field of one source record.

    Identity is the (model, field, foreign_id) triple; ``id`` is the surrogate
    key assigned by the store and is ``None`` until the record is persisted.
    """

    model: Annotated[str, Field(min_length=1)]
    field: Annotated[str, Field(min_length=1)]
    foreign_id: int
    content: Annotated[str, Field(min_length=1)]
    id: int | None = None

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.model, self.field, self.foreign_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexRecord):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)
