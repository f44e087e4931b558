"""Repository building blocks shared by every aggregate."""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    """Session-bound access to one mapped model.

    Repositories stage changes only; committing is left to the calling service
    so one webhook can span several aggregates in a single transaction.
    """

    model: type[ModelT]

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, instance: ModelT) -> ModelT:
        self.session.add(instance)
        return instance

    def get(self, obj_id: str) -> ModelT | None:
        return self.session.get(self.model, obj_id)

    def list(self, offset: int = 0, limit: int = 100) -> list[ModelT]:
        statement = select(self.model).order_by(*self._ordering()).offset(offset).limit(limit)
        return list(self.session.scalars(statement).all())

    def _ordering(self) -> tuple[Any, ...]:
        return (self.model.created_at.asc(),)  # type: ignore[attr-defined]


class TenantScopedRepository(Repository[ModelT]):
    """Every query is filtered to one tenant; rows of other tenants are invisible."""

    def get_for_tenant(self, tenant: TenantContext, obj_id: str) -> ModelT | None:
        return self.find_one(tenant, self.model.id == obj_id)  # type: ignore[attr-defined]

    def list_for_tenant(self, tenant: TenantContext, offset: int = 0, limit: int = 100) -> list[ModelT]:
        statement = self._tenant_query(tenant).order_by(*self._ordering()).offset(offset).limit(limit)
        return list(self.session.scalars(statement).all())

    def find_one(self, tenant: TenantContext, *criteria: Any) -> ModelT | None:
        """First row of the tenant matching ``criteria`` in repository order."""

        statement = self._tenant_query(tenant).where(*criteria).order_by(*self._ordering()).limit(1)
        return self.session.scalar(statement)

    def _tenant_query(self, tenant: TenantContext) -> Select[tuple[ModelT]]:
        return select(self.model).where(self.model.tenant_id == tenant.tenant_id)  # type: ignore[attr-defined]
