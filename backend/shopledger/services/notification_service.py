# Overview: Notification side-effect emitter; records notifications and attempts Expo push delivery.

"""
Notification emitter

Invariants:
- emit() is called only after the ledger transaction has committed.
- Nothing here can fail a ledger operation: persistence and delivery errors
  are logged and swallowed.
- Delivery is attempted at most once per notification; there is no retry
  queue. Tokens the push service reports as dead are pruned.
"""

from __future__ import annotations

import httpx
from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Notification, PushToken
from ..models.notifications import VALID_NOTIFICATION_TYPES
from ..time_utils import utcnow


PUSH_BATCH_SIZE = 100
DEAD_TOKEN_ERRORS = {"DeviceNotRegistered", "InvalidCredentials"}
EXPO_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")


class ExpoPushClient:
    """Thin httpx wrapper around the Expo push endpoint."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def send(self, messages: list[dict]) -> list[dict]:
        """POST one batch; returns Expo push tickets in message order."""
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(
                self.url,
                json=messages,
                headers={
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip, deflate",
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
            body = response.json()
        tickets = body.get("data") if isinstance(body, dict) else None
        return tickets if isinstance(tickets, list) else []


def get_push_client():
    client = current_app.extensions.get("push_client")
    if client is None:
        client = ExpoPushClient(
            current_app.config["EXPO_PUSH_URL"],
            timeout=current_app.config.get("PUSH_TIMEOUT_SECONDS", 5.0),
        )
        current_app.extensions["push_client"] = client
    return client


def emit(
    *,
    business_id: int,
    user_id: int | None,
    type: str,
    title: str,
    message: str,
    entity_id=None,
    entity_type: str | None = None,
    metadata: dict | None = None,
) -> Notification | None:
    """
    Record a notification and attempt push delivery.

    Returns the Notification, or None when there is no recipient or the
    record could not be written.
    """
    if not user_id:
        return None

    if type not in VALID_NOTIFICATION_TYPES:
        current_app.logger.warning("Unknown notification type %r; recording as system", type)
        type = "system"

    try:
        notification = Notification(
            business_id=business_id,
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            entity_id=str(entity_id) if entity_id is not None else None,
            entity_type=entity_type,
            payload=metadata,
            is_read=False,
        )
        db.session.add(notification)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record %s notification for business %s", type, business_id)
        return None

    if current_app.config.get("PUSH_NOTIFICATIONS_ENABLED"):
        try:
            deliver_push(notification)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Push delivery failed for notification %s", notification.id)

    return notification


def _push_messages(notification: Notification, tokens: list[PushToken]) -> list[dict]:
    data = {
        "notificationId": notification.id,
        "type": notification.type,
        "entityId": notification.entity_id,
        "entityType": notification.entity_type,
    }
    if notification.payload:
        data.update(notification.payload)
    return [
        {
            "to": token.push_token,
            "sound": "default",
            "title": notification.title,
            "body": notification.message,
            "data": data,
            "priority": "high",
            "channelId": "default",
        }
        for token in tokens
    ]


def deliver_push(notification: Notification) -> int:
    """
    Send a notification to every valid Expo token of its user.

    Returns the number of tickets reported ok.
    """
    tokens = [
        t for t in db.session.query(PushToken).filter_by(user_id=notification.user_id).all()
        if t.push_token.startswith(EXPO_TOKEN_PREFIXES)
    ]
    if not tokens:
        return 0

    client = get_push_client()
    sent = 0
    dead: list[PushToken] = []
    for start in range(0, len(tokens), PUSH_BATCH_SIZE):
        batch = tokens[start:start + PUSH_BATCH_SIZE]
        tickets = client.send(_push_messages(notification, batch))
        for token, ticket in zip(batch, tickets):
            if ticket.get("status") == "ok":
                sent += 1
                continue
            error = (ticket.get("details") or {}).get("error")
            current_app.logger.warning(
                "Push ticket error for token %s: %s", token.id, ticket.get("message") or error,
            )
            if error in DEAD_TOKEN_ERRORS:
                dead.append(token)

    if dead:
        for token in dead:
            db.session.delete(token)
        db.session.commit()
    return sent


def register_push_token(user_id: int | None, push_token: str, device_id: str) -> PushToken:
    """Upsert by device: a device re-registering replaces its token and owner."""
    if not push_token or not device_id:
        raise ValidationError("Missing required fields: push_token or device_id")

    token = db.session.query(PushToken).filter_by(device_id=device_id).first()
    if token:
        token.user_id = user_id
        token.push_token = push_token
        token.registered_at = utcnow()
    else:
        token = PushToken(user_id=user_id, push_token=push_token, device_id=device_id)
        db.session.add(token)
    db.session.commit()
    return token


def unregister_push_token(device_id: str) -> int:
    if not device_id:
        raise ValidationError("Missing device_id")
    removed = db.session.query(PushToken).filter_by(device_id=device_id).delete()
    db.session.commit()
    return removed


def list_notifications(
    business_id: int,
    user_id: int,
    *,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    q = db.session.query(Notification).filter_by(business_id=business_id, user_id=user_id)
    if unread_only:
        q = q.filter_by(is_read=False)
    limit = max(1, min(int(limit), 200))
    return (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(max(0, int(offset)))
        .limit(limit)
        .all()
    )


def unread_count(business_id: int, user_id: int) -> int:
    return (
        db.session.query(Notification)
        .filter_by(business_id=business_id, user_id=user_id, is_read=False)
        .count()
    )


def _get_own_notification(business_id: int, user_id: int, notification_id: int) -> Notification:
    notification = (
        db.session.query(Notification)
        .filter_by(id=notification_id, business_id=business_id, user_id=user_id)
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(business_id: int, user_id: int, notification_id: int) -> Notification:
    notification = _get_own_notification(business_id, user_id, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.session.commit()
    return notification


def mark_all_read(business_id: int, user_id: int) -> int:
    now = utcnow()
    updated = (
        db.session.query(Notification)
        .filter_by(business_id=business_id, user_id=user_id, is_read=False)
        .update({"is_read": True, "read_at": now}, synchronize_session=False)
    )
    db.session.commit()
    return updated


def delete_notification(business_id: int, user_id: int, notification_id: int) -> None:
    notification = _get_own_notification(business_id, user_id, notification_id)
    db.session.delete(notification)
    db.session.commit()
