"""Strawberry GraphQL schema definition."""
from __future__ import annotations

from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime
from typing import TypeVar

import strawberry
from graphql import GraphQLError
from strawberry.scalars import JSON
from strawberry.types import Info

from closer_ledger.db.models import ReleaseStatus, SaleStatus, UnmatchedPaymentStatus
from closer_ledger.graphql.context import GraphQLContext
from closer_ledger.schemas.commission import CommissionOverrideRequest, CommissionRead
from closer_ledger.schemas.unmatched_payment import (
    BulkMatchItem,
    BulkMatchRequest,
    BulkMatchResponse,
    SaleRead,
    UnmatchedPaymentRead,
)
from closer_ledger.services.commission_service import CommissionService
from closer_ledger.services.exceptions import ServiceError
from closer_ledger.services.manual_match_service import ManualMatchService


ServiceType = TypeVar("ServiceType")
ResultType = TypeVar("ResultType")


ReleaseStatusEnum = strawberry.enum(ReleaseStatus, name="ReleaseStatus")
SaleStatusEnum = strawberry.enum(SaleStatus, name="SaleStatus")
UnmatchedPaymentStatusEnum = strawberry.enum(UnmatchedPaymentStatus, name="UnmatchedPaymentStatus")


@contextmanager
def _session_scope(context: GraphQLContext):
    session = context.get_session()
    try:
        yield session
    finally:
        session.close()


def _execute_with_service(
    info: Info[GraphQLContext, None],
    builder: Callable[["Session", GraphQLContext], ServiceType],
    executor: Callable[[ServiceType], ResultType],
) -> ResultType:
    from sqlalchemy.orm import Session  # local import to avoid circular dependency at module load

    context = info.context
    with _session_scope(context) as session:
        service = builder(session, context)
        try:
            return executor(service)
        except ServiceError as exc:
            raise GraphQLError(str(exc)) from exc


@strawberry.type
class HealthCheck:
    """Simple health payload for initial schema bootstrap."""

    status: str


@strawberry.type
class SaleType:
    id: strawberry.ID
    external_id: str
    processor: str
    amount: float
    currency: str
    status: SaleStatusEnum
    customer_email: str | None
    customer_name: str | None
    paid_at: datetime | None
    contact_id: strawberry.ID | None
    appointment_id: strawberry.ID | None
    rep_id: strawberry.ID | None
    matched_by: str | None
    match_confidence: float | None
    manually_matched: bool
    created_at: datetime


@strawberry.type
class UnmatchedPaymentType:
    id: strawberry.ID
    status: UnmatchedPaymentStatusEnum
    suggested_matches: JSON | None
    reviewed_at: datetime | None
    reviewed_by_user_id: str | None
    created_at: datetime
    sale: SaleType


@strawberry.type
class CommissionType:
    id: strawberry.ID
    sale_id: strawberry.ID
    rep_id: strawberry.ID
    gross_amount: float
    percentage: float
    total_amount: float
    payable_amount: float
    released_amount: float
    release_status: ReleaseStatusEnum
    override_amount: float | None
    override_reason: str | None
    clawback_requested_at: datetime | None
    created_at: datetime


@strawberry.type
class BulkMatchItemType:
    payment_id: strawberry.ID
    appointment_id: strawberry.ID
    success: bool
    sale_id: strawberry.ID | None
    commission_id: strawberry.ID | None
    error: str | None


@strawberry.type
class BulkMatchResult:
    results: list[BulkMatchItemType]
    total: int
    successful: int
    failed: int


@strawberry.input
class BulkMatchInput:
    payment_id: strawberry.ID
    appointment_id: strawberry.ID


def _to_sale_type(sale: SaleRead) -> SaleType:
    return SaleType(
        id=sale.id,
        external_id=sale.external_id,
        processor=sale.processor,
        amount=sale.amount,
        currency=sale.currency,
        status=SaleStatusEnum(sale.status),
        customer_email=sale.customer_email,
        customer_name=sale.customer_name,
        paid_at=sale.paid_at,
        contact_id=sale.contact_id,
        appointment_id=sale.appointment_id,
        rep_id=sale.rep_id,
        matched_by=sale.matched_by,
        match_confidence=sale.match_confidence,
        manually_matched=sale.manually_matched,
        created_at=sale.created_at,
    )


def _to_unmatched_type(entry: UnmatchedPaymentRead) -> UnmatchedPaymentType:
    return UnmatchedPaymentType(
        id=entry.id,
        status=UnmatchedPaymentStatusEnum(entry.status),
        suggested_matches=entry.suggested_matches,
        reviewed_at=entry.reviewed_at,
        reviewed_by_user_id=entry.reviewed_by_user_id,
        created_at=entry.created_at,
        sale=_to_sale_type(entry.sale),
    )


def _to_commission_type(commission: CommissionRead) -> CommissionType:
    return CommissionType(
        id=commission.id,
        sale_id=commission.sale_id,
        rep_id=commission.rep_id,
        gross_amount=commission.gross_amount,
        percentage=commission.percentage,
        total_amount=commission.total_amount,
        payable_amount=commission.payable_amount,
        released_amount=commission.released_amount,
        release_status=ReleaseStatusEnum(commission.release_status),
        override_amount=commission.override_amount,
        override_reason=commission.override_reason,
        clawback_requested_at=commission.clawback_requested_at,
        created_at=commission.created_at,
    )


def _to_bulk_result(response: BulkMatchResponse) -> BulkMatchResult:
    return BulkMatchResult(
        results=[
            BulkMatchItemType(
                payment_id=item.payment_id,
                appointment_id=item.appointment_id,
                success=item.success,
                sale_id=item.sale_id,
                commission_id=item.commission_id,
                error=item.error,
            )
            for item in response.results
        ],
        total=response.total,
        successful=response.successful,
        failed=response.failed,
    )


def _build_bulk_request(matches: list[BulkMatchInput]) -> BulkMatchRequest:
    items: list[BulkMatchItem] = []
    for item in matches:
        items.append(BulkMatchItem(payment_id=str(item.payment_id), appointment_id=str(item.appointment_id)))
    return BulkMatchRequest(matches=items)


@strawberry.type
class Query:
    """Root GraphQL query type."""

    @strawberry.field(description="Basic service liveness check")
    def health(self) -> HealthCheck:
        return HealthCheck(status="ok")

    @strawberry.field(description="Review queue of payments awaiting a manual match")
    def unmatched_payments(
        self,
        info: Info[GraphQLContext, None],
        status: UnmatchedPaymentStatusEnum | None = UnmatchedPaymentStatus.PENDING,
        offset: int = 0,
        limit: int = 100,
    ) -> list[UnmatchedPaymentType]:
        status_filter = status if status is None else UnmatchedPaymentStatus(status.value)
        rows = _execute_with_service(
            info,
            lambda session, context: ManualMatchService(session, context.tenant),
            lambda service: service.list_queue(status=status_filter, offset=offset, limit=limit),
        )
        return [_to_unmatched_type(item) for item in rows]

    @strawberry.field(description="List commissions, optionally filtered by release status")
    def commissions(
        self,
        info: Info[GraphQLContext, None],
        release_status: ReleaseStatusEnum | None = None,
        clawback_only: bool = False,
        offset: int = 0,
        limit: int = 100,
    ) -> list[CommissionType]:
        status_filter = release_status if release_status is None else ReleaseStatus(release_status.value)
        rows = _execute_with_service(
            info,
            lambda session, context: CommissionService(session, context.tenant),
            lambda service: service.list_commissions(
                release_status=status_filter,
                clawback_only=clawback_only,
                offset=offset,
                limit=limit,
            ),
        )
        return [_to_commission_type(item) for item in rows]

    @strawberry.field(description="List sales; `matched` narrows to linked or unlinked ones")
    def sales(
        self,
        info: Info[GraphQLContext, None],
        matched: bool | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[SaleType]:
        rows = _execute_with_service(
            info,
            lambda session, context: ManualMatchService(session, context.tenant),
            lambda service: service.list_sales(matched=matched, offset=offset, limit=limit),
        )
        return [_to_sale_type(item) for item in rows]


@strawberry.type
class Mutation:
    """Root GraphQL mutation type."""

    @strawberry.mutation(description="Link unmatched payments to appointments")
    def bulk_match_payments(
        self,
        info: Info[GraphQLContext, None],
        matches: list[BulkMatchInput],
        user_id: str | None = None,
    ) -> BulkMatchResult:
        response = _execute_with_service(
            info,
            lambda session, context: ManualMatchService(session, context.tenant),
            lambda service: service.bulk_match(_build_bulk_request(matches), user_id or info.context.admin_user_id),
        )
        return _to_bulk_result(response)

    @strawberry.mutation(description="Replace a commission's payable amount")
    def override_commission(
        self,
        info: Info[GraphQLContext, None],
        commission_id: strawberry.ID,
        amount: float,
        reason: str,
        user_id: str | None = None,
    ) -> CommissionType:
        commission = _execute_with_service(
            info,
            lambda session, context: CommissionService(session, context.tenant),
            lambda service: service.override(
                str(commission_id),
                CommissionOverrideRequest(
                    amount=amount,
                    reason=reason,
                    user_id=user_id or info.context.admin_user_id,
                ),
            ),
        )
        return _to_commission_type(commission)


schema = strawberry.Schema(query=Query, mutation=Mutation)
