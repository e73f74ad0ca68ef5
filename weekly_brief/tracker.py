# weekly_brief/tracker.py
"""
Click/open tracker.

Every tracked link in an email points at GET /newsletter/track with:
  sid    send id              eid  edition id
  sub    subscriber id        aid  article id
  type   link type            url  destination
  action open | unsubscribe

`TrackingLinks` builds those URLs for the renderer; `track()` resolves them.
"""
from __future__ import annotations

import hashlib
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from sqlmodel import Session

from .config import SITE_URL, TRACKING_BASE_URL, TRACKING_IP_SALT
from .logging_setup import get_logger
from .models import Edition, LinkClick, Send, Subscriber, utcnow

logger = get_logger("weekly_brief.tracker")

TRACK_PATH = "/newsletter/track"

# 1x1 transparent GIF
PIXEL_GIF = bytes([
    0x47, 0x49, 0x46, 0x38, 0x39, 0x61, 0x01, 0x00, 0x01, 0x00,
    0x80, 0x00, 0x00, 0xFF, 0xFF, 0xFF, 0x00, 0x00, 0x00, 0x21,
    0xF9, 0x04, 0x01, 0x00, 0x00, 0x00, 0x00, 0x2C, 0x00, 0x00,
    0x00, 0x00, 0x01, 0x00, 0x01, 0x00, 0x00, 0x02, 0x02, 0x44,
    0x01, 0x00, 0x3B,
])


@dataclass(frozen=True)
class TrackingLinks:
    edition_id: Optional[int]
    send_id: Optional[int] = None
    subscriber_id: Optional[int] = None
    base_url: str = TRACKING_BASE_URL
    recording: bool = True

    @classmethod
    def direct(cls, edition_id: Optional[int]) -> "TrackingLinks":
        """Plain links for previews, archives and test sends: no pixel, nothing recorded."""
        return cls(edition_id=edition_id, recording=False)

    def _url(self, **params: Any) -> str:
        q: Dict[str, Any] = {}
        if self.send_id is not None:
            q["sid"] = self.send_id
        if self.edition_id is not None:
            q["eid"] = self.edition_id
        if self.subscriber_id is not None:
            q["sub"] = self.subscriber_id
        q.update({k: v for k, v in params.items() if v is not None})
        return f"{self.base_url}{TRACK_PATH}?{urlencode(q)}"

    def pixel(self) -> Optional[str]:
        if not self.recording:
            return None
        return self._url(action="open")

    def click(self, url: str, link_type: str = "article", article_id: Optional[int] = None) -> str:
        if not self.recording:
            return url if url.startswith("http") else f"{SITE_URL}/{url.lstrip('/')}"
        return self._url(type=link_type, aid=article_id, url=url)

    def unsubscribe(self) -> str:
        if not self.recording:
            return f"{SITE_URL}/newsletter/unsubscribe"
        return self._url(action="unsubscribe")


@dataclass
class TrackResult:
    kind: str  # pixel | redirect
    location: Optional[str] = None


def hash_ip(forwarded_for: Optional[str]) -> Optional[str]:
    ip = (forwarded_for or "").split(",")[0].strip()
    if not ip:
        return None
    return hashlib.sha256((ip + TRACKING_IP_SALT).encode("utf-8")).hexdigest()[:16]


def new_session_id() -> str:
    return f"nl_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def with_utm(target: str, edition_id: Optional[int], link_type: Optional[str], session_id: str) -> str:
    """Absolute destination with newsletter UTM params (relative paths resolve against SITE_URL)."""
    absolute = target if target.startswith("http") else f"{SITE_URL}/{target.lstrip('/')}"
    parts = urlparse(absolute)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update({
        "utm_source": "newsletter",
        "utm_medium": "email",
        "utm_campaign": f"edition_{edition_id}",
        "nl_session": session_id,
    })
    if link_type:
        query["utm_content"] = link_type
    return urlunparse(parts._replace(query=urlencode(query)))


def _int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except ValueError:
        return None


def record_open(s: Session, send_id: int) -> bool:
    """First open only: stamps the send and bumps edition/variant/subscriber counters."""
    send = s.get(Send, send_id)
    if send is None or send.opened_at is not None:
        return False
    send.opened_at = utcnow()
    s.add(send)

    edition = s.get(Edition, send.edition_id)
    if edition is not None:
        edition.total_opened += 1
        if send.variant == "A":
            edition.variant_a_opens += 1
        elif send.variant == "B":
            edition.variant_b_opens += 1
        s.add(edition)

    subscriber = s.get(Subscriber, send.subscriber_id)
    if subscriber is not None:
        subscriber.total_opens += 1
        s.add(subscriber)

    s.commit()
    logger.info("OPEN_RECORDED", extra={"send_id": send_id, "edition_id": send.edition_id, "variant": send.variant})
    return True


def record_unsubscribe(s: Session, subscriber_id: int, send_id: Optional[int] = None) -> None:
    now = utcnow()
    subscriber = s.get(Subscriber, subscriber_id)
    if subscriber is not None and subscriber.unsubscribed_at is None:
        subscriber.unsubscribed_at = now
        s.add(subscriber)
    if send_id is not None:
        send = s.get(Send, send_id)
        if send is not None:
            send.unsubscribed_at = now
            s.add(send)
    s.commit()
    logger.info("UNSUBSCRIBE_RECORDED", extra={"subscriber_id": subscriber_id, "send_id": send_id})


def record_click(
    s: Session,
    target: str,
    *,
    send_id: Optional[int],
    edition_id: Optional[int],
    subscriber_id: Optional[int],
    article_id: Optional[int],
    link_type: str,
    user_agent: str,
    ip_hash: Optional[str],
    session_id: str,
) -> LinkClick:
    click = LinkClick(
        send_id=send_id,
        edition_id=edition_id,
        subscriber_id=subscriber_id,
        article_id=article_id,
        link_url=target,
        link_type=link_type,
        user_agent=user_agent,
        ip_hash=ip_hash,
        session_id=session_id,
    )
    s.add(click)

    send = s.get(Send, send_id) if send_id is not None else None
    if send is not None and send.clicked_at is None:
        send.clicked_at = utcnow()
        s.add(send)
        edition = s.get(Edition, send.edition_id)
        if edition is not None:
            edition.total_clicked += 1
            s.add(edition)
    if subscriber_id is not None:
        subscriber = s.get(Subscriber, subscriber_id)
        if subscriber is not None:
            subscriber.total_clicks += 1
            s.add(subscriber)

    s.commit()
    return click


def track(s: Session, params: Dict[str, str], user_agent: str = "", forwarded_for: str = "") -> TrackResult:
    """Resolve one tracker hit. Never raises; anything unexpected lands on the site root."""
    send_id = _int(params.get("sid"))
    edition_id = _int(params.get("eid"))
    subscriber_id = _int(params.get("sub"))
    article_id = _int(params.get("aid"))
    link_type = params.get("type") or "article"
    target = params.get("url")
    action = params.get("action")

    try:
        if action == "open":
            if send_id is not None:
                record_open(s, send_id)
            return TrackResult("pixel")

        if action == "unsubscribe":
            if subscriber_id is not None:
                record_unsubscribe(s, subscriber_id, send_id)
            return TrackResult("redirect", f"{SITE_URL}/newsletter?unsubscribed=true")

        if target:
            session_id = new_session_id()
            record_click(
                s,
                target,
                send_id=send_id,
                edition_id=edition_id,
                subscriber_id=subscriber_id,
                article_id=article_id,
                link_type=link_type,
                user_agent=user_agent,
                ip_hash=hash_ip(forwarded_for),
                session_id=session_id,
            )
            logger.info("CLICK_RECORDED", extra={"send_id": send_id, "edition_id": edition_id, "type": link_type})
            return TrackResult("redirect", with_utm(target, edition_id, link_type, session_id))
    except Exception as e:
        s.rollback()
        logger.exception("TRACK_FAILED", extra={"handled": True, "action": action, "error": type(e).__name__})
        if action == "open":
            return TrackResult("pixel")

    return TrackResult("redirect", SITE_URL)
