"""Navigation service — enumerate every relation path reachable from a root type."""

from typing import List, Optional

import structlog

from dbgateway.config import get_settings
from dbgateway.core.exceptions import GatewayAction, GatewayError
from dbgateway.domain.repositories.metadata import RelationMetadataProvider
from dbgateway.domain.schemas.navigation import PATH_SEPARATOR

logger = structlog.get_logger(__name__)


def walk_navigations(
    provider: RelationMetadataProvider,
    root: type,
    max_level: Optional[int] = None,
) -> List[str]:
    """Return dotted relation paths from ``root``, preorder, at most ``max_level`` segments deep.

    The depth bound is what stops relationship cycles; duplicates reached by
    different routes are kept. An unmapped root raises GatewayError.
    """
    if max_level is None:
        max_level = get_settings().NAVIGATION_MAX_LEVEL
    if max_level < 1:
        raise GatewayError(f"max_level must be at least 1, got {max_level}.")

    if provider.relations_of(root) is None:
        raise GatewayError(
            f"{getattr(root, '__name__', root)} is not known to the relation metadata.",
            action=GatewayAction.QUERY,
            entity_type=getattr(root, "__name__", str(root)),
        )

    paths: List[str] = []
    _walk(provider, root, max_level, "", 0, paths)
    logger.debug("Navigations walked", root=root.__name__, max_level=max_level, count=len(paths))
    return paths


def _walk(
    provider: RelationMetadataProvider,
    entity_type: type,
    max_level: int,
    parent_path: str,
    depth: int,
    paths: List[str],
) -> None:
    if depth >= max_level:
        return

    relations = provider.relations_of(entity_type)
    if not relations:
        return

    for rel in relations:
        path = rel.name if not parent_path else PATH_SEPARATOR.join((parent_path, rel.name))
        paths.append(path)
        _walk(provider, rel.target, max_level, path, depth + 1, paths)
