# Overview: Daily entry aggregate: lazy creation, incremental totals, close/reopen and reconciliation.

"""
Daily entry state machine

    OPEN --close_entry--> CLOSED --reopen_entry--> OPEN --> ...

- One entry per (business, local calendar day); created lazily by the first
  sale of the day or explicitly by start_new_day (idempotent).
- Sale mutations adjust totals incrementally through apply_sale_delta().
- close_entry re-derives every total from the entry's Sale rows (the
  reconciliation sweep) and overwrites the incremental values.
- reopen_entry only flips the flag; totals are left as closed.
- Debt sales count toward debts_total only, never sales_total/profit_total.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import AlreadyClosedError, EntryNotFoundError, NotClosedError
from ..models import Business, DailyEntry, PaymentMethod, Sale
from ..models.notifications import TYPE_DAILY_SUMMARY, TYPE_SYSTEM
from ..time_utils import business_day, day_start_utc, utcnow
from . import notification_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .tenant_service import business_timezone, owned_or_none, require_active_business


TOTAL_FIELDS = (
    "cash_total_cents",
    "mpesa_total_cents",
    "sales_total_cents",
    "debts_total_cents",
    "profit_total_cents",
)

# Which running total each payment channel feeds
CHANNEL_TOTAL_FIELD = {
    PaymentMethod.CASH: "cash_total_cents",
    PaymentMethod.MPESA: "mpesa_total_cents",
}


def zero_totals() -> dict:
    return {field: 0 for field in TOTAL_FIELDS}


def today_for(business: Business, now: datetime | None = None) -> date:
    return business_day(now, business_timezone(business))


def find_entry(business_id: int, day: date, *, lock: bool = False) -> DailyEntry | None:
    query = db.session.query(DailyEntry).filter_by(business_id=business_id, business_date=day)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_or_create_entry(business: Business, now: datetime | None = None) -> tuple[DailyEntry, bool]:
    """
    Resolve the business's entry for the day containing `now`, creating a
    zeroed open entry if none exists. Flushes, never commits.
    """
    tz = business_timezone(business)
    day = business_day(now, tz)
    entry = find_entry(business.id, day, lock=True)
    if entry is not None:
        return entry, False

    entry = DailyEntry(
        business_id=business.id,
        business_date=day,
        opened_for=day_start_utc(day, tz),
        closed=False,
        closed_at=None,
        **zero_totals(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry, True


def get_entry(business_id: int, entry_id: int, *, lock: bool = False) -> DailyEntry:
    query = db.session.query(DailyEntry).filter_by(id=entry_id)
    if lock:
        query = lock_for_update(query)
    entry = owned_or_none(query.first(), business_id, kind="daily_entry")
    if entry is None:
        raise EntryNotFoundError("Daily entry not found.", details={"entry_id": entry_id})
    return entry


def get_today_entry(business_id: int, now: datetime | None = None) -> DailyEntry | None:
    business = require_active_business(business_id)
    return find_entry(business.id, today_for(business, now))


def list_entries(business_id: int, *, closed: bool | None = None, limit: int = 30) -> list[DailyEntry]:
    require_active_business(business_id)
    q = db.session.query(DailyEntry).filter_by(business_id=business_id)
    if closed is not None:
        q = q.filter_by(closed=closed)
    limit = max(1, min(int(limit), 366))
    return q.order_by(DailyEntry.business_date.desc()).limit(limit).all()


def list_sales_for_entry(business_id: int, entry_id: int) -> list[Sale]:
    entry = get_entry(business_id, entry_id)
    return (
        db.session.query(Sale)
        .filter_by(daily_entry_id=entry.id)
        .order_by(Sale.updated_at.desc(), Sale.id.desc())
        .all()
    )


def apply_sale_delta(entry: DailyEntry, method: PaymentMethod, amount_cents: int, profit_cents: int) -> None:
    """
    Move the entry's running totals by a (possibly negative) sale delta.

    cash/mpesa: channel total, sales_total and profit_total.
    debt: debts_total only.
    """
    if method is PaymentMethod.DEBT:
        entry.debts_total_cents += amount_cents
        return

    field = CHANNEL_TOTAL_FIELD[method]
    setattr(entry, field, getattr(entry, field) + amount_cents)
    entry.sales_total_cents += amount_cents
    entry.profit_total_cents += profit_cents


def compute_totals(entry_id: int) -> dict:
    """
    Reconciliation sweep: totals derived from every Sale row of the entry.
    """
    rows = (
        db.session.query(
            Sale.payment_method,
            func.coalesce(func.sum(Sale.total_amount_cents), 0),
            func.coalesce(func.sum(Sale.total_profit_cents), 0),
        )
        .filter(Sale.daily_entry_id == entry_id)
        .group_by(Sale.payment_method)
        .all()
    )

    totals = zero_totals()
    for method, amount, profit in rows:
        method = PaymentMethod.parse(method)
        amount = int(amount or 0)
        profit = int(profit or 0)
        if method is PaymentMethod.DEBT:
            totals["debts_total_cents"] += amount
            continue
        totals[CHANNEL_TOTAL_FIELD[method]] += amount
        totals["sales_total_cents"] += amount
        totals["profit_total_cents"] += profit
    return totals


def start_new_day(business_id: int, *, user_id: int | None = None, now: datetime | None = None) -> DailyEntry:
    """Return today's entry, creating it if needed. Idempotent."""
    business = require_active_business(business_id)

    def _op():
        begin_write()
        entry, created = get_or_create_entry(business, now)
        db.session.commit()
        return entry, created

    entry, created = run_with_retry(_op, retry_on_integrity=True)
    if created:
        notification_service.emit(
            business_id=business_id,
            user_id=user_id,
            type=TYPE_SYSTEM,
            title="New Business Day Started",
            message=f"A new business day has been initialized on {entry.business_date:%a %b %d %Y}.",
            entity_id=entry.id,
            entity_type="daily_entry",
        )
    return entry


def close_entry(business_id: int, entry_id: int, *, user_id: int | None = None) -> DailyEntry:
    """
    Close the day: overwrite totals with the reconciliation sweep.

    Raises EntryNotFoundError, AlreadyClosedError.
    """
    require_active_business(business_id)

    def _op():
        begin_write()
        entry = get_entry(business_id, entry_id, lock=True)
        if entry.closed:
            raise AlreadyClosedError("Entry already closed.", details={"entry_id": entry.id})

        stored = entry.totals()
        totals = compute_totals(entry.id)
        drift = {k: stored[k] - v for k, v in totals.items() if stored[k] != v}
        for field, value in totals.items():
            setattr(entry, field, value)
        entry.closed = True
        entry.closed_at = utcnow()
        entry.closed_by_user_id = user_id
        db.session.commit()
        return entry, totals, drift

    entry, totals, drift = run_with_retry(_op)
    if drift:
        current_app.logger.warning("Daily entry %s totals drifted before close: %s", entry.id, drift)
    current_app.logger.info("Daily entry %s closed for business %s", entry.id, business_id)

    notification_service.emit(
        business_id=business_id,
        user_id=user_id,
        type=TYPE_DAILY_SUMMARY,
        title="Day Closed Successfully",
        message=f"Business day closed on {entry.business_date:%a %b %d %Y}.",
        entity_id=entry.id,
        entity_type="daily_entry",
        metadata={"totals": totals},
    )
    return entry


def reopen_entry(business_id: int, entry_id: int, *, user_id: int | None = None) -> DailyEntry:
    """
    Reopen a closed day. Totals are not recomputed.

    Raises EntryNotFoundError, NotClosedError.
    """
    require_active_business(business_id)

    def _op():
        begin_write()
        entry = get_entry(business_id, entry_id, lock=True)
        if not entry.closed:
            raise NotClosedError("Entry is already open.", details={"entry_id": entry.id})
        entry.closed = False
        entry.closed_at = None
        entry.closed_by_user_id = None
        db.session.commit()
        return entry

    entry = run_with_retry(_op)
    current_app.logger.info("Daily entry %s reopened for business %s", entry.id, business_id)

    notification_service.emit(
        business_id=business_id,
        user_id=user_id,
        type=TYPE_SYSTEM,
        title="Daily Entry Reopened",
        message=f"The daily entry for {entry.business_date:%a %b %d %Y} has been reopened.",
        entity_id=entry.id,
        entity_type="daily_entry",
    )
    return entry


def reconcile_entry(business_id: int, entry_id: int, *, apply: bool = False) -> dict:
    """
    Compare stored totals with the reconciliation sweep without closing.

    With apply=True the stored totals are overwritten (open or closed entry).
    Returns {"stored", "computed", "drift"} where drift = stored - computed.
    """
    require_active_business(business_id)

    def _op():
        if apply:
            begin_write()
        entry = get_entry(business_id, entry_id, lock=apply)
        stored = entry.totals()
        computed = compute_totals(entry.id)
        drift = {k: stored[k] - computed[k] for k in TOTAL_FIELDS if stored[k] != computed[k]}
        if apply and drift:
            for field, value in computed.items():
                setattr(entry, field, value)
            db.session.commit()
        return {"entry_id": entry.id, "stored": stored, "computed": computed, "drift": drift}

    return run_with_retry(_op)
