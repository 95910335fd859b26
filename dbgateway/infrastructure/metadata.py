"""
SQLAlchemy implementation of the relation metadata provider.

Reads relationships from the mapper registry and turns include paths into
eager-loading options.
"""

from typing import List, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.orm.interfaces import LoaderOption

from dbgateway.core.exceptions import GatewayAction, GatewayError
from dbgateway.domain.schemas.navigation import IncludePath, RelationInfo

LOADERS = {
    "selectin": selectinload,
    "joined": joinedload,
}


class SQLAlchemyRelationMetadata:
    """Relation metadata read from SQLAlchemy mappers."""

    def relations_of(self, entity_type: type) -> Optional[List[RelationInfo]]:
        try:
            mapper = inspect(entity_type)
        except NoInspectionAvailable:
            return None
        if not hasattr(mapper, "relationships"):
            return None

        return [
            RelationInfo(
                name=rel.key,
                target=rel.mapper.class_,
                is_collection=bool(rel.uselist),
            )
            for rel in mapper.relationships
        ]

    def resolve_segment(self, entity_type: type, segment: str) -> RelationInfo:
        """Match a path segment to a relation by attribute name, then by unique target type name."""
        relations = self.relations_of(entity_type)
        if relations is None:
            raise GatewayError(
                f"{entity_type.__name__} is not a mapped type.",
                action=GatewayAction.QUERY,
                entity_type=getattr(entity_type, "__name__", str(entity_type)),
            )

        for rel in relations:
            if rel.name == segment:
                return rel

        by_type = [rel for rel in relations if rel.target.__name__ == segment]
        if len(by_type) == 1:
            return by_type[0]

        reason = "is ambiguous" if by_type else "does not exist"
        raise GatewayError(
            f"Relation '{segment}' on {entity_type.__name__} {reason}.",
            action=GatewayAction.QUERY,
            entity_type=entity_type.__name__,
        )

    def resolve_path(self, root: type, path: IncludePath) -> Sequence[RelationInfo]:
        resolved = []
        current = root
        for segment in path.segments:
            rel = self.resolve_segment(current, segment)
            resolved.append(rel)
            current = rel.target
        return resolved

    def loader_option(self, root: type, path: IncludePath, strategy: str = "selectin") -> LoaderOption:
        """Build a chained eager-load option for ``path`` starting at ``root``."""
        loader = LOADERS.get(strategy)
        if loader is None:
            raise GatewayError(f"Unknown include loader strategy '{strategy}'.")

        option = None
        owner = root
        for rel in self.resolve_path(root, path):
            attr = getattr(owner, rel.name)
            option = loader(attr) if option is None else getattr(option, loader.__name__)(attr)
            owner = rel.target
        return option
