"""Pydantic schemas for relation metadata, include paths and lookups."""

from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from dbgateway.core.exceptions import GatewayError

PATH_SEPARATOR = "."


class RelationInfo(BaseModel):
    """One relationship declared on a mapped type."""

    name: str
    target: type
    is_collection: bool = False

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class IncludePath(BaseModel):
    """An immutable, dot-separated traversal from a root type through its relations."""

    segments: Tuple[str, ...]

    model_config = ConfigDict(frozen=True)

    @field_validator("segments")
    @classmethod
    def _no_empty_segments(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value or any(not s or not s.strip() for s in value):
            raise GatewayError(f"Invalid include path: {PATH_SEPARATOR.join(value)!r}")
        return value

    @classmethod
    def parse(cls, path: str) -> "IncludePath":
        if not isinstance(path, str) or not path.strip():
            raise GatewayError(f"Invalid include path: {path!r}")
        return cls(segments=tuple(path.split(PATH_SEPARATOR)))

    @property
    def depth(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return PATH_SEPARATOR.join(self.segments)


class LookupStatus(str, Enum):
    NOT_FOUND = "not_found"
    FOUND_ONE = "found_one"
    FOUND_MANY = "found_many"


class Lookup(BaseModel):
    """Result of a single-row lookup by identifier."""

    status: LookupStatus
    entity: Optional[Any] = None
    matches: List[Any] = []

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND_ONE
