"""
SQLAlchemy implementation of the Base Repository.

A generic persistence gateway over one mapped class. Every call is a single
action against the session: stage, commit, reload. Failures are rolled back
and surfaced as GatewayError.

The gateway keeps no state between calls, but an AsyncSession is not safe for
concurrent use: run one operation at a time per session.
"""

from enum import Enum
from typing import Any, Generic, Iterable, List, Optional, Sequence, Type, TypeVar, Union

import structlog
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import QueryableAttribute
from sqlalchemy.sql import ClauseElement

from dbgateway.application.services.navigation_service import walk_navigations
from dbgateway.config import get_settings
from dbgateway.core.exceptions import GatewayAction, GatewayError
from dbgateway.domain.models.base import Identifiable, is_unset_id, supports_soft_delete
from dbgateway.domain.repositories.base import BaseRepository, IncludeSpec
from dbgateway.domain.schemas.navigation import IncludePath, Lookup, LookupStatus
from dbgateway.infrastructure.metadata import SQLAlchemyRelationMetadata

ModelType = TypeVar("ModelType", bound=Identifiable)

logger = structlog.get_logger(__name__)


class DeletePolicy(str, Enum):
    HARD = "hard"  # remove the row
    SOFT = "soft"  # set ``deleted`` and keep the row


class SQLAlchemyRepository(BaseRepository[ModelType], Generic[ModelType]):
    """Generic persistence gateway for SQLAlchemy models.

    Subclasses may override :meth:`prepare_create` and :meth:`prepare_update`
    to apply business rules before an entity is written.
    """

    def __init__(
        self,
        db: AsyncSession,
        model: Type[ModelType],
        *,
        delete_policy: Union[DeletePolicy, str, None] = None,
        metadata: Optional[SQLAlchemyRelationMetadata] = None,
        include_loader: Optional[str] = None,
    ):
        settings = get_settings()
        self.db = db
        self.model = model
        self.delete_policy = DeletePolicy(delete_policy or settings.DELETE_POLICY)
        self.metadata = metadata or SQLAlchemyRelationMetadata()
        self.include_loader = include_loader or settings.INCLUDE_LOADER

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all(self, predicate: Any = None, *include_paths: IncludeSpec) -> Select:
        """Build an unexecuted SELECT over the entity set.

        ``predicate`` is a SQLAlchemy boolean expression or a callable taking
        the model class and returning one. Each include path becomes an
        eager-load option. No predicate selects every row.
        """
        stmt = select(self.model)
        try:
            for include in include_paths:
                path = self._as_include_path(include)
                stmt = stmt.options(self.metadata.loader_option(self.model, path, self.include_loader))

            clause = self._resolve_predicate(predicate)
            if clause is not None:
                stmt = stmt.where(clause)
        except GatewayError:
            raise
        except Exception as exc:
            raise GatewayError(
                f"Error in gateway get_all() for {self.entity_name}.",
                action=GatewayAction.QUERY,
                entity_type=self.entity_name,
            ) from exc

        return stmt

    async def get_by_id(self, entity_id: int, *include_paths: IncludeSpec) -> Optional[ModelType]:
        result = await self.lookup(entity_id, *include_paths)
        if result.status == LookupStatus.FOUND_MANY:
            raise GatewayError(
                f"There is more than one instance of the {self.entity_name} with ID: {entity_id}",
                action=GatewayAction.QUERY,
                entity_type=self.entity_name,
                entity_ids=[entity_id],
            )
        return result.entity

    async def list(
        self,
        predicate: Any = None,
        *include_paths: IncludeSpec,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[ModelType]:
        stmt = self.get_all(predicate, *include_paths).order_by(self.model.id).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self.db.scalars(stmt)
            return list(result.unique().all())
        except SQLAlchemyError as exc:
            raise GatewayError(
                f"Error listing {self.entity_name}.",
                action=GatewayAction.QUERY,
                entity_type=self.entity_name,
            ) from exc

    async def lookup(self, entity_id: int, *include_paths: IncludeSpec) -> Lookup:
        """Single-row lookup by ID that reports none, one or many matches."""
        stmt = self.get_all(self.model.id == entity_id, *include_paths).limit(2)
        try:
            matches = (await self.db.scalars(stmt)).unique().all()
        except SQLAlchemyError as exc:
            raise GatewayError(
                f"Error looking up {self.entity_name} with ID: {entity_id}",
                action=GatewayAction.QUERY,
                entity_type=self.entity_name,
                entity_ids=[entity_id],
            ) from exc

        if not matches:
            return Lookup(status=LookupStatus.NOT_FOUND)
        if len(matches) > 1:
            return Lookup(status=LookupStatus.FOUND_MANY, matches=matches)
        return Lookup(status=LookupStatus.FOUND_ONE, entity=matches[0], matches=matches)

    async def exists(self, predicate: Any = None) -> bool:
        """True if any row matches ``predicate``; with no predicate, true if the set is non-empty."""
        stmt = select(self.get_all(predicate).exists())
        try:
            return bool(await self.db.scalar(stmt))
        except SQLAlchemyError as exc:
            raise GatewayError(
                f"Error checking existence of {self.entity_name}.",
                action=GatewayAction.QUERY,
                entity_type=self.entity_name,
            ) from exc

    def walk_navigations(self, max_level: Optional[int] = None) -> List[str]:
        """Every relation path reachable from this gateway's model."""
        return walk_navigations(self.metadata, self.model, max_level)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, entity: ModelType) -> Optional[ModelType]:
        self._require_entity(entity, GatewayAction.CREATE)
        entity_to_create = self.prepare_create(entity)
        return (await self._apply([entity_to_create], GatewayAction.CREATE))[0]

    async def create_all(self, entities: Iterable[ModelType]) -> List[ModelType]:
        batch = self._require_batch(entities, GatewayAction.CREATE)
        return await self._apply([self.prepare_create(e) for e in batch], GatewayAction.CREATE)

    async def update(self, entity: ModelType) -> Optional[ModelType]:
        self._require_entity(entity, GatewayAction.UPDATE)
        with self.db.no_autoflush:
            await self._require_stored(entity, GatewayAction.UPDATE)
            entity_to_update = self.prepare_update(entity)
            return (await self._apply([entity_to_update], GatewayAction.UPDATE))[0]

    async def update_all(self, entities: Iterable[ModelType]) -> List[ModelType]:
        batch = self._require_batch(entities, GatewayAction.UPDATE)
        with self.db.no_autoflush:
            for entity in batch:
                await self._require_stored(entity, GatewayAction.UPDATE)
            return await self._apply([self.prepare_update(e) for e in batch], GatewayAction.UPDATE)

    async def delete(self, entity: ModelType) -> Optional[ModelType]:
        """Remove the row, or mark it deleted under the soft delete policy."""
        self._require_entity(entity, GatewayAction.DELETE)
        self._require_delete_policy()
        with self.db.no_autoflush:
            await self._require_stored(entity, GatewayAction.DELETE)
            return (await self._apply([entity], GatewayAction.DELETE))[0]

    async def delete_all(self, entities: Iterable[ModelType]) -> List[ModelType]:
        batch = self._require_batch(entities, GatewayAction.DELETE)
        self._require_delete_policy()
        with self.db.no_autoflush:
            for entity in batch:
                await self._require_stored(entity, GatewayAction.DELETE)
            return await self._apply(batch, GatewayAction.DELETE)

    async def upsert(self, entity: ModelType) -> Optional[ModelType]:
        """Create when the ID is unset or has no stored row, otherwise update."""
        self._require_entity(entity, GatewayAction.UPSERT)
        with self.db.no_autoflush:
            if await self._should_create(entity):
                return await self.create(entity)
            return await self.update(entity)

    async def upsert_all(self, entities: Iterable[ModelType]) -> List[ModelType]:
        """Upsert a batch in one commit; results keep the input order."""
        batch = self._require_batch(entities, GatewayAction.UPSERT)
        prepared, staging = [], []
        with self.db.no_autoflush:
            for entity in batch:
                if await self._should_create(entity):
                    prepared.append(self.prepare_create(entity))
                    staging.append(GatewayAction.CREATE)
                else:
                    prepared.append(self.prepare_update(entity))
                    staging.append(GatewayAction.UPDATE)
            return await self._apply(prepared, GatewayAction.UPSERT, staging=staging)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def prepare_create(self, entity: ModelType) -> ModelType:
        """Apply business rules before creation. May return a different object."""
        return entity

    def prepare_update(self, entity: ModelType) -> ModelType:
        """Apply business rules before update. May return a different object."""
        return entity

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _apply(
        self,
        entities: Sequence[ModelType],
        action: GatewayAction,
        staging: Optional[Sequence[GatewayAction]] = None,
    ) -> List[ModelType]:
        """Stage ``entities`` for ``action``, commit, and reload whatever was written.

        ``staging`` gives a per-entity action when one commit mixes creates
        and updates.
        """
        staging = staging or [action] * len(entities)
        entity_ids = [getattr(e, "id", None) for e in entities]
        log = logger.bind(action=action.value, entity_type=self.entity_name, entity_ids=entity_ids)
        log.debug("Applying gateway action")

        try:
            staged = [await self._stage(entity, step) for entity, step in zip(entities, staging)]
            rows_affected = await self._commit()

            if rows_affected > 0:
                for entity, step in zip(staged, staging):
                    if not self._removes_rows(step):
                        await self.db.refresh(entity)
        except Exception as exc:
            await self._rollback(log)
            log.exception("Gateway action failed")
            raise GatewayError(
                f"Error on {action.value} action on {self.entity_name} ID: {entity_ids}",
                action=action,
                entity_type=self.entity_name,
                entity_ids=entity_ids,
            ) from exc

        log.debug("Gateway action applied", rows_affected=rows_affected)
        return staged

    async def _stage(self, entity: ModelType, action: GatewayAction) -> ModelType:
        if action == GatewayAction.CREATE:
            if is_unset_id(entity.id):
                entity.id = None
            self.db.add(entity)
            return entity

        if action == GatewayAction.UPDATE:
            return await self.db.merge(entity)

        if action == GatewayAction.DELETE:
            if self.delete_policy == DeletePolicy.SOFT:
                entity.deleted = True
                return await self.db.merge(entity)
            target = entity if entity in self.db else await self.db.merge(entity)
            await self.db.delete(target)
            return target

        raise GatewayError(f"Invalid database operation. {self.entity_name} with ID: {entity.id}")

    async def _commit(self) -> int:
        """Commit the session and return how many objects were written.

        Counts pending changes, so mutations that query before staging run
        under ``no_autoflush``.
        """
        db = self.db
        rows_affected = (
            len(db.new)
            + len(db.deleted)
            + sum(1 for obj in db.dirty if db.is_modified(obj))
        )
        await db.commit()
        return rows_affected

    async def _rollback(self, log) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError:
            log.warning("Rollback failed", exc_info=True)

    def _removes_rows(self, action: GatewayAction) -> bool:
        return action == GatewayAction.DELETE and self.delete_policy == DeletePolicy.HARD

    async def _should_create(self, entity: ModelType) -> bool:
        if is_unset_id(entity.id):
            return True
        result = await self.lookup(entity.id)
        if result.status == LookupStatus.FOUND_MANY:
            raise GatewayError(
                f"There is more than one instance of the {self.entity_name} with ID: {entity.id}",
                action=GatewayAction.UPSERT,
                entity_type=self.entity_name,
                entity_ids=[entity.id],
            )
        return result.status == LookupStatus.NOT_FOUND

    async def _require_stored(self, entity: ModelType, action: GatewayAction) -> None:
        result = await self.lookup(entity.id)
        if result.status == LookupStatus.NOT_FOUND:
            raise GatewayError(
                f"{self.entity_name} with ID: {entity.id} not found in the database when attempting to {action.value}.",
                action=action,
                entity_type=self.entity_name,
                entity_ids=[entity.id],
            )
        if result.status == LookupStatus.FOUND_MANY:
            raise GatewayError(
                f"There is more than one instance of the {self.entity_name} with ID: {entity.id}",
                action=action,
                entity_type=self.entity_name,
                entity_ids=[entity.id],
            )

    def _require_entity(self, entity: Optional[ModelType], action: GatewayAction) -> None:
        if entity is None:
            raise GatewayError(
                f"Entity is null when attempting to {action.value}.",
                action=action,
                entity_type=self.entity_name,
            )

    def _require_batch(self, entities: Optional[Iterable[ModelType]], action: GatewayAction) -> List[ModelType]:
        batch = [e for e in entities] if entities is not None else []
        if not batch:
            raise GatewayError(
                f"No {self.entity_name} entities given to {action.value}.",
                action=action,
                entity_type=self.entity_name,
            )
        if any(e is None for e in batch):
            raise GatewayError(
                f"Entity is null when attempting to {action.value}.",
                action=action,
                entity_type=self.entity_name,
            )
        return batch

    def _require_delete_policy(self) -> None:
        if self.delete_policy == DeletePolicy.SOFT and not supports_soft_delete(self.model):
            raise GatewayError(
                f"{self.entity_name} has no 'deleted' column; soft delete is not possible.",
                action=GatewayAction.DELETE,
                entity_type=self.entity_name,
            )

    def _as_include_path(self, include: IncludeSpec) -> IncludePath:
        if isinstance(include, IncludePath):
            return include
        if isinstance(include, QueryableAttribute):
            return IncludePath(segments=(include.key,))
        return IncludePath.parse(include)

    def _resolve_predicate(self, predicate: Any) -> Any:
        if predicate is None or isinstance(predicate, ClauseElement):
            return predicate
        if callable(predicate):
            return predicate(self.model)
        return predicate


PersistenceGateway = SQLAlchemyRepository
