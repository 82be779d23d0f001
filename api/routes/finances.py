"""Finance endpoints: advances, loans, payments and payment sync.

Every mutation reloads the ledger it touched so the response carries any
warning from that reload.
"""

from datetime import datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_app_settings, get_backend, get_finance_service, get_views
from api.services.finances import FinanceService
from api.services.summaries import filter_by_name, finance_summary, live_payments
from api.services.views import PageViews
from connectors.backend.gateway import FactoryBackend
from core.config import Settings
from core.models.canonical import Ledger, Payment
from models.api_responses import (
    AdvanceForAllRequest,
    AdvanceRequest,
    BatchAdvanceResponse,
    FinancesResponse,
    LoanRequest,
    MessageResponse,
    PaymentRequest,
    StatusChangeRequest,
    StatusOptionsResponse,
    SyncReportResponse,
    SyncRequest,
    SyncSummary,
)
from reconciliation.engine import SyncOutcome, SyncReport


router = APIRouter()

LEDGER_DATASETS = {
    Ledger.ADVANCE: "advances",
    Ledger.LOAN: "loans",
    Ledger.PAYMENT: "payments",
}


async def _ensure_suppliers(view, backend: FactoryBackend) -> None:
    if not view.suppliers:
        await view.refresh(backend, "suppliers")


def _sync_response(report: SyncReport) -> SyncReportResponse:
    return SyncReportResponse(
        batch_id=report.batch_id,
        summary=SyncSummary(
            suppliers=len(report.results),
            created=report.count(SyncOutcome.CREATED),
            updated=report.count(SyncOutcome.UPDATED),
            skipped=report.count(SyncOutcome.SKIPPED),
            failed=report.count(SyncOutcome.FAILED),
        ),
        payments_refreshed=report.payments_refreshed,
        failed={r.supplier_id: r.error or "" for r in report.results if r.outcome == SyncOutcome.FAILED},
        payments=report.payments,
    )


# =============================================================================
# PAGE
# =============================================================================

@router.get("", response_model=FinancesResponse)
async def get_finances(
    advance_search: Optional[str] = Query(None, description="Filter advances by supplier name"),
    loan_search: Optional[str] = Query(None, description="Filter loans by supplier name"),
    payment_search: Optional[str] = Query(None, description="Filter payments by supplier name"),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
    settings: Settings = Depends(get_app_settings),
) -> FinancesResponse:
    """All three ledgers with summary cards computed over the unfiltered lists.

    Payment rows carry amounts recomputed from the current ledgers.
    """
    view = views.finances
    warnings = await view.refresh(backend)
    snapshot = view.snapshot(settings.outstanding_loan_statuses)

    return FinancesResponse(
        summary=finance_summary(snapshot),
        advances=filter_by_name(view.advances, advance_search),
        loans=filter_by_name(view.loans, loan_search),
        payments=filter_by_name(live_payments(snapshot), payment_search),
        suppliers=view.suppliers,
        warnings=warnings,
    )


@router.get("/status-options", response_model=StatusOptionsResponse)
async def get_status_options() -> StatusOptionsResponse:
    return StatusOptionsResponse(
        advance=Ledger.ADVANCE.status_options,
        loan=Ledger.LOAN.status_options,
        payment=Ledger.PAYMENT.status_options,
    )


# =============================================================================
# ADVANCES
# =============================================================================

@router.post("/advances", response_model=MessageResponse, status_code=201)
async def create_advance(
    body: AdvanceRequest,
    service: FinanceService = Depends(get_finance_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    view = views.finances
    await _ensure_suppliers(view, backend)
    advance = await service.create_advance(body.supplier_id, body.amount, body.month, suppliers=view.suppliers)
    warnings = await view.refresh(backend, "advances")
    return MessageResponse(message=f"Advance created for {advance.supplier_id}", warnings=warnings)


@router.post("/advances/all", response_model=BatchAdvanceResponse, status_code=201)
async def create_advance_for_all(
    body: AdvanceForAllRequest,
    service: FinanceService = Depends(get_finance_service),
    views: PageViews = Depends(get_views),
) -> BatchAdvanceResponse:
    """Same advance for every supplier; per-supplier failures are reported, not raised."""
    result = await service.create_advance_for_all(body.amount, body.month)
    if result.advances:
        views.finances.data["advances"] = result.advances
    return result


# =============================================================================
# LOANS
# =============================================================================

@router.post("/loans", response_model=MessageResponse, status_code=201)
async def create_loan(
    body: LoanRequest,
    service: FinanceService = Depends(get_finance_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    view = views.finances
    await _ensure_suppliers(view, backend)
    loan = await service.create_loan(
        supplier_id=body.supplier_id,
        amount=body.amount,
        duration_months=body.duration_months,
        purpose=body.purpose,
        monthly_amount=body.monthly_amount,
        due_date=body.due_date,
        status=body.status,
        suppliers=view.suppliers,
    )
    warnings = await view.refresh(backend, "loans")
    return MessageResponse(message=f"Loan created for {loan.supplier_id}", warnings=warnings)


# =============================================================================
# PAYMENTS
# =============================================================================

@router.post("/payments", response_model=MessageResponse, status_code=201)
async def create_payment(
    body: PaymentRequest,
    service: FinanceService = Depends(get_finance_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    view = views.finances
    await _ensure_suppliers(view, backend)
    when = None
    if body.payment_date is not None:
        when = datetime.combine(body.payment_date, time.min)
    payment = await service.create_payment(
        supplier_id=body.supplier_id,
        loan_amount=body.loan_amount,
        advance_amount=body.advance_amount,
        tea_amount=body.tea_amount,
        transport_charge=body.transport_charge,
        net=body.net_amount,
        when=when,
        status=body.status,
        suppliers=view.suppliers,
    )
    warnings = await view.refresh(backend, "payments")
    return MessageResponse(
        message=f"Payment of {payment.net_amount} created for {payment.supplier_id}",
        warnings=warnings,
    )


@router.post("/payments/sync", response_model=SyncReportResponse)
async def sync_payments(
    body: Optional[SyncRequest] = None,
    service: FinanceService = Depends(get_finance_service),
    views: PageViews = Depends(get_views),
) -> SyncReportResponse:
    """Recompute and upsert every supplier's payment."""
    report = await service.sync_payments(body.transport_charge if body else None)
    views.finances.data["payments"] = report.payments
    return _sync_response(report)


@router.get("/payments/{payment_id}", response_model=Payment)
async def get_payment(
    payment_id: str,
    service: FinanceService = Depends(get_finance_service),
) -> Payment:
    """Single payment for the receipt view."""
    payment = await service.get_payment(payment_id)
    if payment is None:
        raise HTTPException(status_code=404, detail=f"Payment {payment_id} not found")
    return payment


# =============================================================================
# ANY LEDGER
# =============================================================================

@router.put("/{ledger}/{record_id}/status", response_model=MessageResponse)
async def update_status(
    ledger: Ledger,
    record_id: str,
    body: StatusChangeRequest,
    service: FinanceService = Depends(get_finance_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    await service.update_status(ledger, record_id, body.status)
    warnings = await views.finances.refresh(backend, LEDGER_DATASETS[ledger])
    return MessageResponse(message=f"{ledger.value.capitalize()} {record_id} set to {body.status}", warnings=warnings)


@router.delete("/{ledger}/{record_id}", response_model=MessageResponse)
async def delete_record(
    ledger: Ledger,
    record_id: str,
    service: FinanceService = Depends(get_finance_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    await service.delete(ledger, record_id)
    warnings = await views.finances.refresh(backend, LEDGER_DATASETS[ledger])
    return MessageResponse(message=f"{ledger.value.capitalize()} {record_id} deleted", warnings=warnings)
