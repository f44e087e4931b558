"""GraphQL context utilities for tenant-aware operations."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session, sessionmaker
from strawberry.fastapi import BaseContext

from closer_ledger.core.database import SessionLocal
from closer_ledger.core.tenant import TenantContext, TenantNotFoundError, load_tenant_context

TENANT_HEADER = "x-tenant-id"
ADMIN_USER_HEADER = "x-admin-user-id"


@dataclass(slots=True)
class GraphQLContext(BaseContext):
    """Tenant, session factory and acting admin for one GraphQL request."""

    tenant: TenantContext
    session_factory: sessionmaker[Session]
    admin_user_id: str | None = None

    def get_session(self) -> Session:
        """Return a new SQLAlchemy session for resolver use."""

        return self.session_factory()


def build_context(tenant_id: str, admin_user_id: str | None = None) -> GraphQLContext:
    """Construct a GraphQL context with resolved tenant."""

    with SessionLocal() as session:
        try:
            tenant_context = load_tenant_context(session, tenant_id)
        except TenantNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return GraphQLContext(tenant=tenant_context, session_factory=SessionLocal, admin_user_id=admin_user_id)


def context_getter(request: Request) -> GraphQLContext:
    """FastAPI-compatible context getter for Strawberry GraphQL router."""

    tenant_id = request.headers.get(TENANT_HEADER)
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {TENANT_HEADER} header",
        )
    return build_context(tenant_id, request.headers.get(ADMIN_USER_HEADER))
