# Overview: Flask API routes for daily entries (start, close, reopen, reconcile).

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError, ValidationError
from ..services import daily_entry_service


daily_entries_bp = Blueprint("daily_entries", __name__, url_prefix="/api/daily-entries")


def _parse_closed_filter(raw):
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise ValidationError("closed must be true or false")


@daily_entries_bp.get("")
@require_auth
def list_entries_route():
    """
    Query params:
    - closed: true|false (optional)
    - limit: max entries, newest first (default 30)
    """
    try:
        closed = _parse_closed_filter(request.args.get("closed"))
        limit = request.args.get("limit", 30, type=int)
        entries = daily_entry_service.list_entries(g.business_id, closed=closed, limit=limit)
        return jsonify({"entries": [e.to_dict() for e in entries]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@daily_entries_bp.get("/today")
@require_auth
def today_route():
    try:
        entry = daily_entry_service.get_today_entry(g.business_id)
        return jsonify({"entry": entry.to_dict() if entry else None}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@daily_entries_bp.post("/start")
@require_auth
def start_new_day_route():
    """Idempotent: returns today's entry, creating it if needed."""
    try:
        entry = daily_entry_service.start_new_day(g.business_id, user_id=g.current_user.id)
        return jsonify({"entry": entry.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start new day")
        return jsonify({"error": "Internal server error"}), 500


@daily_entries_bp.get("/<int:entry_id>")
@require_auth
def get_entry_route(entry_id: int):
    try:
        entry = daily_entry_service.get_entry(g.business_id, entry_id)
        return jsonify({"entry": entry.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@daily_entries_bp.get("/<int:entry_id>/sales")
@require_auth
def list_entry_sales_route(entry_id: int):
    try:
        sales = daily_entry_service.list_sales_for_entry(g.business_id, entry_id)
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@daily_entries_bp.post("/<int:entry_id>/close")
@require_auth
def close_entry_route(entry_id: int):
    try:
        entry = daily_entry_service.close_entry(g.business_id, entry_id, user_id=g.current_user.id)
        return jsonify({"entry": entry.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close daily entry")
        return jsonify({"error": "Internal server error"}), 500


@daily_entries_bp.post("/<int:entry_id>/reopen")
@require_auth
def reopen_entry_route(entry_id: int):
    try:
        entry = daily_entry_service.reopen_entry(g.business_id, entry_id, user_id=g.current_user.id)
        return jsonify({"entry": entry.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reopen daily entry")
        return jsonify({"error": "Internal server error"}), 500


@daily_entries_bp.post("/<int:entry_id>/reconcile")
@require_auth
def reconcile_entry_route(entry_id: int):
    """Body: apply (bool, default false) to overwrite stored totals with the sweep."""
    data = request.get_json(silent=True) or {}
    try:
        report = daily_entry_service.reconcile_entry(
            g.business_id,
            entry_id,
            apply=bool(data.get("apply", False)),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reconcile daily entry")
        return jsonify({"error": "Internal server error"}), 500
