"""Tenant and team setup: tenants, commission roles and closers."""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Closer, CommissionRole
from closer_ledger.repositories.closer import CloserRepository, CommissionRoleRepository
from closer_ledger.repositories.tenant import TenantRepository
from closer_ledger.schemas.team import CloserCreate, CloserRead, CommissionRoleCreate, CommissionRoleRead
from closer_ledger.schemas.tenant import TenantCreate, TenantRead

from .exceptions import ConflictError, NotFoundError


def _rate(value: float | None) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


class TenantService:
    """Service responsible for tenant lifecycle actions."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.tenants = TenantRepository(session)

    def create(self, payload: TenantCreate) -> TenantRead:
        tenant = self.tenants.model(
            name=payload.name,
            crm_location_id=payload.crm_location_id,
            fallback_commission_rate=_rate(payload.fallback_commission_rate),
        )
        self.session.add(tenant)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Tenant name or CRM location already exists") from exc
        self.session.refresh(tenant)
        return TenantRead.model_validate(tenant)

    def list(self) -> list[TenantRead]:
        results = self.tenants.list()
        return [TenantRead.model_validate(row) for row in results]

    def get(self, tenant_id: str) -> TenantRead:
        tenant = self.tenants.get(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")
        return TenantRead.model_validate(tenant)


class TeamService:
    """Tenant-scoped closer and commission role management."""

    def __init__(self, session: Session, tenant: TenantContext) -> None:
        self.session = session
        self.tenant = tenant
        self.closers = CloserRepository(session)
        self.roles = CommissionRoleRepository(session)

    def create_role(self, payload: CommissionRoleCreate) -> CommissionRoleRead:
        role = CommissionRole(
            tenant_id=self.tenant.tenant_id,
            name=payload.name,
            default_rate=_rate(payload.default_rate),
        )
        self.roles.add(role)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Commission role already exists") from exc
        self.session.refresh(role)
        return CommissionRoleRead.model_validate(role)

    def list_roles(self) -> list[CommissionRoleRead]:
        return [CommissionRoleRead.model_validate(row) for row in self.roles.list_for_tenant(self.tenant)]

    def create_closer(self, payload: CloserCreate) -> CloserRead:
        if payload.commission_role_id is not None:
            if self.roles.get_for_tenant(self.tenant, payload.commission_role_id) is None:
                raise NotFoundError("Commission role not found")
        closer = Closer(
            tenant_id=self.tenant.tenant_id,
            email=payload.email,
            name=payload.name,
            crm_user_id=payload.crm_user_id,
            custom_commission_rate=_rate(payload.custom_commission_rate),
            commission_role_id=payload.commission_role_id,
        )
        self.closers.add(closer)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Closer email already exists for tenant") from exc
        self.session.refresh(closer)
        return CloserRead.model_validate(closer)

    def list_closers(self, offset: int = 0, limit: int = 100) -> list[CloserRead]:
        rows = self.closers.list_for_tenant(self.tenant, offset=offset, limit=limit)
        return [CloserRead.model_validate(row) for row in rows]
