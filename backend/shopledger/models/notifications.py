from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


TYPE_SYSTEM = "system"
TYPE_DAILY_SUMMARY = "daily_summary"
TYPE_DEBT_REMINDER = "debt_reminder"
TYPE_PAYMENT_ALERT = "payment_alert"
TYPE_STOCK_ALERT = "stock_alert"
VALID_NOTIFICATION_TYPES = {
    TYPE_SYSTEM,
    TYPE_DAILY_SUMMARY,
    TYPE_DEBT_REMINDER,
    TYPE_PAYMENT_ALERT,
    TYPE_STOCK_ALERT,
}


class Notification(db.Model):
    """
    Write-once record describing a ledger mutation.

    Purely observational: written after the ledger transaction commits, and
    never consulted by ledger logic. Only is_read/read_at change afterwards.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        db.Index("ix_notifications_entity", "entity_id", "entity_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)

    entity_id = db.Column(db.String(64), nullable=True)
    entity_type = db.Column(db.String(32), nullable=True)
    # "metadata" is reserved on declarative models
    payload = db.Column("metadata", db.JSON, nullable=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "metadata": self.payload,
            "is_read": self.is_read,
            "read_at": to_utc_z(self.read_at) if self.read_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class PushToken(db.Model):
    """Expo push token registered by a device (one row per device)."""
    __tablename__ = "push_tokens"
    __table_args__ = (
        db.UniqueConstraint("device_id", name="uq_push_tokens_device"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    push_token = db.Column(db.String(255), nullable=False, index=True)
    device_id = db.Column(db.String(255), nullable=False)
    registered_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "push_token": self.push_token,
            "device_id": self.device_id,
            "registered_at": to_utc_z(self.registered_at),
        }
