# Overview: Flask API routes for in-app notifications and push token registration.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import notification_service


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)
    items = notification_service.list_notifications(
        g.business_id,
        g.current_user.id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return jsonify({"notifications": [n.to_dict() for n in items]}), 200


@notifications_bp.get("/unread-count")
@require_auth
def unread_count_route():
    count = notification_service.unread_count(g.business_id, g.current_user.id)
    return jsonify({"unread": count}), 200


@notifications_bp.post("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(g.business_id, g.current_user.id, notification_id)
        return jsonify({"notification": notification.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@notifications_bp.post("/read-all")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(g.business_id, g.current_user.id)
    return jsonify({"updated": updated}), 200


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    try:
        notification_service.delete_notification(g.business_id, g.current_user.id, notification_id)
        return jsonify({"message": "Notification deleted"}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@notifications_bp.post("/push-tokens")
@require_auth
def register_push_token_route():
    """Body: push_token, device_id."""
    data = request.get_json(silent=True) or {}
    try:
        token = notification_service.register_push_token(
            g.current_user.id,
            data.get("push_token"),
            data.get("device_id"),
        )
        return jsonify({"push_token": token.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register push token")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.delete("/push-tokens/<device_id>")
@require_auth
def unregister_push_token_route(device_id: str):
    try:
        removed = notification_service.unregister_push_token(device_id)
        return jsonify({"removed": removed}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
