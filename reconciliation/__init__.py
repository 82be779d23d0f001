"""Salary aggregation and payment reconciliation."""

from reconciliation.aggregator import (
    PeriodKey,
    SalaryDeductions,
    SalaryStatement,
    SupplierPeriodSalary,
    aggregate_collections,
    period_label,
    salary_statement,
)
from reconciliation.engine import (
    PaymentComputation,
    PaymentReconciler,
    SupplierSyncResult,
    SyncOutcome,
    SyncReport,
)
from reconciliation.ledgers import (
    LedgerSnapshot,
    gross_tea_amount,
    net_amount,
    outstanding_advance,
    outstanding_loan,
    pending_approvals,
    total_outstanding_loans,
)

__all__ = [
    "PeriodKey",
    "SalaryDeductions",
    "SalaryStatement",
    "SupplierPeriodSalary",
    "aggregate_collections",
    "period_label",
    "salary_statement",
    "PaymentComputation",
    "PaymentReconciler",
    "SupplierSyncResult",
    "SyncOutcome",
    "SyncReport",
    "LedgerSnapshot",
    "gross_tea_amount",
    "net_amount",
    "outstanding_advance",
    "outstanding_loan",
    "pending_approvals",
    "total_outstanding_loans",
]
