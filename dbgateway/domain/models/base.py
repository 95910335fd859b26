"""Entity capabilities — what the gateway needs from a mapped model."""

from typing import Optional, Protocol, runtime_checkable

from sqlalchemy import BigInteger, Boolean, Column, Integer

# 64-bit key everywhere except SQLite, which only autoincrements INTEGER primary keys
IdType = BigInteger().with_variant(Integer, "sqlite")


@runtime_checkable
class Identifiable(Protocol):
    """Any entity with an assignable integer identifier."""

    id: Optional[int]


@runtime_checkable
class SoftDeletable(Identifiable, Protocol):
    """An entity that is marked deleted instead of removed."""

    deleted: bool


class IdentityMixin:
    id = Column(IdType, primary_key=True, autoincrement=True)


class SoftDeleteMixin:
    deleted = Column(Boolean, nullable=False, default=False)


def is_unset_id(entity_id) -> bool:
    """``0`` and ``None`` both mean "not persisted yet"."""
    return entity_id is None or entity_id == 0


def supports_soft_delete(model) -> bool:
    return hasattr(model, "deleted")
