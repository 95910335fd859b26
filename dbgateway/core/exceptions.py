"""
Exception types raised by the gateway.
Every store-layer failure is normalized into a GatewayError before it reaches the caller.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class GatewayAction(str, Enum):
    """The store action a gateway call was performing."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"
    QUERY = "query"


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class GatewayError(AppError):
    """Raised for any failed gateway operation.

    The original exception, when there is one, is chained as ``__cause__``
    and exposed through :attr:`cause`.
    """
    def __init__(
        self,
        message: str = "An error occurred in the persistence gateway.",
        *,
        action: Optional[GatewayAction] = None,
        entity_type: Optional[str] = None,
        entity_ids: Optional[Iterable[Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.action = action
        self.entity_type = entity_type
        self.entity_ids: List[Any] = list(entity_ids or [])
        details = dict(details or {})
        if action is not None:
            details.setdefault("action", action.value)
        if entity_type is not None:
            details.setdefault("entity_type", entity_type)
        if self.entity_ids:
            details.setdefault("entity_ids", self.entity_ids)
        super().__init__(message, details)

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__
