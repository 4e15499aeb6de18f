from collections import defaultdict
from datetime import date, timedelta

from .accounting import ZERO, to_money
from .availability import available_workers
from .constants import (
    DELAYED_THRESHOLD_DAYS, FinancialStatus, ORDER_STATUS_LABELS, OrderStatus, TERMINAL_STATUSES,
)
from .ledger import summarize
from .models import Contract, Order, Transaction
from .rates import RatesConfig

CRITICAL_DAYS = 90
DANGER_DAYS = 60


def delay_severity(days: int) -> str:
    if days > CRITICAL_DAYS:
        return "critical"
    if days > DANGER_DAYS:
        return "danger"
    return "warning"


def _active():
    return Order.order_status.notin_([s.value for s in TERMINAL_STATUSES])


def delayed_contracts(today: date | None = None, nationality=None) -> list[dict]:
    """Active orders whose contract date is more than 30 days old, oldest first."""
    today = today or date.today()
    threshold = today - timedelta(days=DELAYED_THRESHOLD_DAYS)
    query = Order.query.filter(
        Order.contract_date.isnot(None),
        Order.contract_date < threshold,
        _active(),
    )
    if nationality:
        query = query.filter(Order.nationality == nationality)

    rows = []
    for order in query.order_by(Order.contract_date, Order.id).all():
        days = (today - order.contract_date).days
        rows.append({
            "order_id": order.id,
            "client_name": order.client_name,
            "phone": order.phone,
            "nationality": order.nationality,
            "contract_number": order.contract_number,
            "contract_date": order.contract_date.isoformat(),
            "order_status": order.order_status,
            "status_label": ORDER_STATUS_LABELS[OrderStatus(order.order_status)],
            "worker_name": order.worker_name,
            "external_office": order.external_office,
            "delay_reason": order.delay_reason,
            "days_since_contract": days,
            "severity": delay_severity(days),
        })
    return rows


def delayed_summary(rows) -> dict:
    return {
        "total": len(rows),
        "critical": sum(1 for r in rows if r["severity"] == "critical"),
        "danger": sum(1 for r in rows if r["severity"] == "danger"),
        "warning": sum(1 for r in rows if r["severity"] == "warning"),
        "max_days": max((r["days_since_contract"] for r in rows), default=0),
    }


def _entries_by_contract(contract_ids):
    grouped = defaultdict(list)
    if not contract_ids:
        return grouped
    entries = (
        Transaction.query.filter(Transaction.contract_id.in_(contract_ids))
        .order_by(Transaction.created_at, Transaction.id)
        .all()
    )
    for entry in entries:
        grouped[entry.contract_id].append(entry)
    return grouped


def financial_summary(rates: RatesConfig, date_from: date | None = None,
                      date_to: date | None = None, financial_status=None) -> dict:
    """
    Per-contract figures with ledger profit where entries exist and the
    stored estimate otherwise, plus totals and a monthly breakdown.

    Contracts whose ledger profit differs from their estimate are flagged
    but never corrected.
    """
    query = Contract.query
    if date_from:
        query = query.filter(Contract.contract_date >= date_from)
    if date_to:
        query = query.filter(Contract.contract_date <= date_to)
    if financial_status:
        query = query.filter(Contract.financial_status == financial_status)
    contracts = query.order_by(Contract.contract_date.desc(), Contract.id.desc()).all()
    entries = _entries_by_contract([c.id for c in contracts])

    rows = []
    monthly = {}
    totals = defaultdict(lambda: ZERO)
    pending_count = 0
    for contract in contracts:
        balance = summarize(entries.get(contract.id, ()), rates, contract.approx_profit)
        expected = to_money(contract.expected_from_musaned)
        actual = to_money(contract.actual_from_musaned)
        profit = balance.effective_profit

        totals["expected"] += expected
        totals["actual"] += actual
        totals["expenses"] += to_money(contract.total_expenses)
        totals["profit"] += profit
        if contract.actual_from_musaned is None and \
                contract.financial_status != FinancialStatus.CANCELLED_BEFORE_ARRIVAL.value:
            pending_count += 1
            totals["pending"] += expected

        rows.append({
            "contract_id": contract.id,
            "contract_number": contract.contract_number,
            "client_name": contract.client_name,
            "contract_date": contract.contract_date.isoformat() if contract.contract_date else None,
            "client_payment": str(to_money(contract.client_payment)),
            "musaned_fee_value": str(to_money(contract.musaned_fee_value)),
            "expected_from_musaned": str(expected),
            "actual_from_musaned": str(actual),
            "total_expenses": str(to_money(contract.total_expenses)),
            "financial_status": contract.financial_status,
            "profit_diverges": balance.divergence != 0,
            **balance.to_dict(),
        })

        if contract.contract_date:
            month = contract.contract_date.strftime("%Y-%m")
            bucket = monthly.setdefault(month, {"month": month, "contracts": 0, "expected": ZERO,
                                                "actual": ZERO, "profit": ZERO})
            bucket["contracts"] += 1
            bucket["expected"] += expected
            bucket["actual"] += actual
            bucket["profit"] += profit

    return {
        "contracts": rows,
        "totals": {
            "total_expected": str(totals["expected"]),
            "total_actual": str(totals["actual"]),
            "difference": str(totals["actual"] - totals["expected"]),
            "pending_count": pending_count,
            "pending_amount": str(totals["pending"]),
            "total_expenses": str(totals["expenses"]),
            "total_profit": str(totals["profit"]),
            "diverging_contracts": sum(1 for r in rows if r["profit_diverges"]),
        },
        "monthly": [
            {**bucket, "expected": str(bucket["expected"]), "actual": str(bucket["actual"]),
             "profit": str(bucket["profit"])}
            for _, bucket in sorted(monthly.items())
        ],
    }


def dashboard_counts(today: date | None = None) -> dict:
    today = today or date.today()
    month_start = today.replace(day=1)
    contracted = Order.query.filter(Order.contract_number.isnot(None))
    threshold = today - timedelta(days=DELAYED_THRESHOLD_DAYS)

    by_nationality = defaultdict(int)
    for order in contracted.filter(_active()).all():
        by_nationality[order.nationality] += 1

    return {
        "contracts_this_month": contracted.filter(Order.contract_date >= month_start).count(),
        "active_orders": contracted.filter(_active()).count(),
        "arrived_this_month": contracted.filter(
            Order.order_status == OrderStatus.ARRIVED.value,
            Order.arrival_date >= month_start,
        ).count(),
        "delayed": contracted.filter(
            _active(), Order.contract_date.isnot(None), Order.contract_date < threshold,
        ).count(),
        "available_workers": len(available_workers(today)),
        "active_by_nationality": dict(by_nationality),
    }
