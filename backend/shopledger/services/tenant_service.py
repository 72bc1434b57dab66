"""
Business scoping helpers.

WHY: Every ledger operation takes an explicit business_id (resolved from the
authenticated session at the route boundary) and must verify that every row
it touches belongs to that business.

SECURITY INVARIANTS:
1. Operations without an active business fail with NoActiveBusinessError
2. Rows owned by another business are reported as not found (existence is not revealed)
3. Cross-business access attempts are logged
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from flask import current_app

from ..extensions import db
from ..errors import NoActiveBusinessError
from ..models import Business
from ..time_utils import resolve_timezone


def require_active_business(business_id: int | None) -> Business:
    """
    Resolve the acting business.

    Raises NoActiveBusinessError if business_id is missing, unknown or deactivated.
    """
    if not business_id:
        raise NoActiveBusinessError("No active business found for this user.")

    business = db.session.get(Business, business_id)
    if business is None or not business.is_active:
        raise NoActiveBusinessError("No active business found for this user.")
    return business


def business_timezone(business: Business) -> ZoneInfo:
    fallback = current_app.config.get("BUSINESS_DEFAULT_TIMEZONE", "UTC")
    return resolve_timezone(business.timezone, fallback)


def owned_or_none(row, business_id: int, *, kind: str):
    """
    Return `row` if it belongs to business_id, else None.

    A foreign row is treated exactly like a missing one by callers.
    """
    if row is None:
        return None
    if row.business_id != business_id:
        current_app.logger.warning(
            "Cross-business access denied: %s %s belongs to business %s, caller business %s",
            kind, row.id, row.business_id, business_id,
        )
        return None
    return row
