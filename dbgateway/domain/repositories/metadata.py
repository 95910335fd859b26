"""
Relation Metadata Interface.
Whatever backs the gateway must be able to describe the relations of a type.
"""

from typing import List, Optional, Protocol

from dbgateway.domain.schemas.navigation import RelationInfo


class RelationMetadataProvider(Protocol):
    """Interface for relation metadata lookups."""

    def relations_of(self, entity_type: type) -> Optional[List[RelationInfo]]:
        """Relations declared on ``entity_type``, or ``None`` if the type is unknown."""
        ...
