"""Salary calculations endpoint."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_backend, get_views
from api.services.summaries import salary_rows
from api.services.views import PageViews
from connectors.backend.gateway import FactoryBackend
from core.errors import ValidationFailure
from models.api_responses import SalaryCalculationsResponse
from reconciliation.aggregator import SalaryDeductions


router = APIRouter()

ZERO = Decimal("0")


@router.get("", response_model=SalaryCalculationsResponse)
async def get_calculations(
    month: Optional[str] = Query(None, description="Year-month filter, e.g. 2023-04"),
    search: Optional[str] = Query(None, description="Supplier name contains"),
    transport: Decimal = Query(ZERO, description="Transport deduction per row"),
    advance: Decimal = Query(ZERO),
    loan: Decimal = Query(ZERO),
    tea_packets: Decimal = Query(ZERO),
    fertilizer: Decimal = Query(ZERO),
    other: Decimal = Query(ZERO),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> SalaryCalculationsResponse:
    """Monthly gross salary per supplier with the given deductions applied."""
    deductions = SalaryDeductions(
        transport=transport,
        advance=advance,
        loan=loan,
        tea_packets=tea_packets,
        fertilizer=fertilizer,
        other=other,
    )
    negative = [name for name, value in vars(deductions).items() if value < 0]
    if negative:
        raise ValidationFailure([f"Deduction '{name}' cannot be negative" for name in negative])

    view = views.calculations
    warnings = await view.refresh(backend)
    rows = salary_rows(view.get("collections"), month=month, search=search, deductions=deductions)

    return SalaryCalculationsResponse(
        month=month,
        search=search,
        rows=rows,
        total_gross=sum((r.gross_amount for r in rows), ZERO),
        total_net=sum((r.net_amount for r in rows), ZERO),
        warnings=warnings,
    )
