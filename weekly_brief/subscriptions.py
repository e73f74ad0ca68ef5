# weekly_brief/subscriptions.py
from __future__ import annotations

import re
from typing import Any, Dict, Optional

from sqlmodel import Session, select

from .emailer import send_email
from .errors import NotFoundError, PipelineError, ValidationError
from .logging_setup import get_logger
from .models import Edition, Subscriber, Unsubscribe, utcnow
from .render_edition import render_forward_html

logger = get_logger("weekly_brief.subscriptions")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 255
MAX_FEEDBACK_LENGTH = 500
MAX_NAME_LENGTH = 100


def is_valid_email(email: str) -> bool:
    return bool(email) and len(email) <= MAX_EMAIL_LENGTH and EMAIL_RE.match(email) is not None


def sanitize_name(name: str) -> str:
    return re.sub(r"[<>'\"&]", "", (name or "")[:MAX_NAME_LENGTH]).strip()


def active_subscribers_query():
    """Confirmed and not unsubscribed; the only subscribers a send may target."""
    return (
        select(Subscriber)
        .where(Subscriber.confirmed == True)  # noqa: E712
        .where(Subscriber.unsubscribed_at.is_(None))
        .order_by(Subscriber.id)
    )


def unsubscribe(s: Session, email: str, reason: Optional[str] = None, feedback: Optional[str] = None) -> Dict[str, Any]:
    if not email:
        raise ValidationError("Email is required")
    normalized = email.lower().strip()
    if not is_valid_email(normalized):
        raise ValidationError("Invalid email format")

    subscriber = s.exec(select(Subscriber).where(Subscriber.email == normalized)).first()
    if subscriber is None:
        # still recorded below
        logger.info("UNSUBSCRIBE_UNKNOWN_EMAIL", extra={"handled": True})
    elif subscriber.unsubscribed_at is None:
        subscriber.unsubscribed_at = utcnow()
        s.add(subscriber)

    s.add(Unsubscribe(
        email=normalized,
        reason=reason or None,
        feedback=(feedback or "")[:MAX_FEEDBACK_LENGTH] or None,
        source="website",
    ))
    s.commit()
    logger.info("UNSUBSCRIBE_DONE", extra={"subscriber_id": subscriber.id if subscriber else None})
    return {"success": True, "message": "Successfully unsubscribed"}


def forward_edition(s: Session, edition_id: int, sender_name: str, recipient_email: str) -> Dict[str, Any]:
    if not edition_id or not sender_name or not recipient_email:
        raise ValidationError("Missing required fields: edition_id, sender_name, recipient_email")
    if not is_valid_email(recipient_email.strip()):
        raise ValidationError("Invalid email address format")
    name = sanitize_name(sender_name)
    if not name:
        raise ValidationError("Invalid sender name")

    edition = s.get(Edition, edition_id)
    if edition is None or edition.status != "sent":
        raise NotFoundError("Newsletter edition not found or not yet published")

    html = render_forward_html(edition, name)
    subject = f"{name} forwarded: {edition.subject_line}"
    if not send_email(subject, html, [recipient_email.strip()]):
        raise PipelineError("Failed to forward newsletter")

    logger.info("FORWARD_SENT", extra={"edition_id": edition.id})
    return {"success": True, "message": "Newsletter forwarded successfully"}
