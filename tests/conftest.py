"""Shared pytest fixtures for closer ledger tests."""
from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from closer_ledger import main
from closer_ledger.core.database import get_db_session
from closer_ledger.core.tenant import TenantContext, context_for
from closer_ledger.db.base import Base
from closer_ledger.db.models import (
    Appointment,
    AppointmentStatus,
    Closer,
    CommissionRole,
    Contact,
    Tenant,
)


@pytest.fixture()
def engine() -> Generator:
    # One shared connection so the TestClient worker thread sees the same in-memory database.
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session(engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    db_session = SessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()


@pytest.fixture()
def tenant(session: Session) -> Tenant:
    tenant = Tenant(name="Test Tenant", crm_location_id="loc-1", fallback_commission_rate=Decimal("0.10"))
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant


@pytest.fixture()
def tenant_context(tenant: Tenant) -> TenantContext:
    return context_for(tenant)


class Factory:
    """Persist domain rows with sensible defaults."""

    def __init__(self, session: Session, tenant: Tenant) -> None:
        self.session = session
        self.tenant = tenant

    def role(self, name: str = "Senior", rate: str = "0.15", tenant: Tenant | None = None) -> CommissionRole:
        role = CommissionRole(tenant_id=(tenant or self.tenant).id, name=name, default_rate=Decimal(rate))
        self.session.add(role)
        self.session.commit()
        return role

    def closer(
        self,
        email: str = "closer@example.com",
        *,
        name: str | None = "Casey Closer",
        crm_user_id: str | None = None,
        rate: str | None = None,
        role: CommissionRole | None = None,
        tenant: Tenant | None = None,
    ) -> Closer:
        closer = Closer(
            tenant_id=(tenant or self.tenant).id,
            email=email,
            name=name,
            crm_user_id=crm_user_id,
            custom_commission_rate=Decimal(rate) if rate is not None else None,
            commission_role_id=role.id if role else None,
        )
        self.session.add(closer)
        self.session.commit()
        return closer

    def contact(
        self,
        email: str | None = "buyer@example.com",
        *,
        name: str | None = "Jordan Buyer",
        phone: str | None = None,
        external_id: str | None = None,
        tenant: Tenant | None = None,
    ) -> Contact:
        contact = Contact(
            tenant_id=(tenant or self.tenant).id,
            email=email,
            name=name,
            phone=phone,
            external_id=external_id,
        )
        self.session.add(contact)
        self.session.commit()
        return contact

    def appointment(
        self,
        contact: Contact,
        scheduled_at: datetime,
        *,
        closer: Closer | None = None,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        external_id: str | None = None,
        rescheduled_from: Appointment | None = None,
    ) -> Appointment:
        appointment = Appointment(
            tenant_id=contact.tenant_id,
            contact_id=contact.id,
            closer_id=closer.id if closer else None,
            scheduled_at=scheduled_at,
            status=status,
            external_id=external_id,
            rescheduled_from_id=rescheduled_from.id if rescheduled_from else None,
        )
        self.session.add(appointment)
        self.session.commit()
        return appointment


@pytest.fixture()
def factory(session: Session, tenant: Tenant) -> Factory:
    return Factory(session, tenant)


@pytest.fixture()
def other_tenant(session: Session) -> Tenant:
    tenant = Tenant(name="Other Tenant", crm_location_id="loc-2")
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant


@pytest.fixture()
def utc():
    def build(*args: int) -> datetime:
        return datetime(*args, tzinfo=timezone.utc)

    return build


@pytest.fixture()
def client(session: Session, monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    monkeypatch.setattr(main, "_run_migrations", lambda: None)
    application = main.create_app()

    def override_get_db_session() -> Generator[Session, None, None]:
        try:
            yield session
        finally:
            session.rollback()

    application.dependency_overrides[get_db_session] = override_get_db_session

    with TestClient(application) as test_client:
        yield test_client

    application.dependency_overrides.clear()
