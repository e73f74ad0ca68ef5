# weekly_brief/sender.py
"""
Bulk sender for one edition.

Production sends split the active subscribers into two A/B test cohorts and a
remainder that gets the winning subject line. Each recipient gets their own
Send row (for open/click attribution) and their own tracked HTML. A failed
recipient is logged, counted and its Send row marked failed; the batch always
runs to the end. If the run breaks before anyone is mailed, the edition goes
back to draft.
"""
from __future__ import annotations

import math
import random
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session

from .config import AB_TEST_FRACTION, SEND_BATCH_PAUSE_SECONDS, SEND_BATCH_SIZE
from .content import load_edition_content
from .emailer import send_email
from .errors import EditionAlreadySentError, NotFoundError, PipelineError, ValidationError
from .logging_setup import get_logger
from .models import Edition, Send, Subscriber, utcnow
from .render_edition import render_edition_html
from .subscriptions import active_subscribers_query, is_valid_email
from .tracker import TrackingLinks

logger = get_logger("weekly_brief.sender")

VARIANT_A = "A"
VARIANT_B = "B"
VARIANT_WINNER = "winner"


def split_cohorts(
    subscribers: Sequence[Subscriber],
    seed: Any,
    fraction: float = AB_TEST_FRACTION,
) -> Tuple[List[Subscriber], List[Subscriber], List[Subscriber]]:
    """
    Deterministic shuffle (seeded, independent of input order) then two
    floor(n * fraction) test cohorts and the remainder.
    """
    pool = sorted(subscribers, key=lambda sub: sub.id)
    random.Random(str(seed)).shuffle(pool)
    size = math.floor(len(pool) * fraction)
    return pool[:size], pool[size:size * 2], pool[size * 2:]


def winning_subject(edition: Edition) -> str:
    """B only wins on strictly more recorded opens; a tie (incl. 0/0) keeps A."""
    if edition.subject_line_variant_b and edition.variant_b_opens > edition.variant_a_opens:
        return edition.subject_line_variant_b
    return edition.subject_line


def _mark_failed(s: Session, send_id: int, error: str) -> None:
    try:
        record = s.get(Send, send_id)
        if record is not None:
            record.status = "failed"
            record.error = error
            s.add(record)
            s.commit()
    except Exception as e:
        s.rollback()
        logger.exception(
            "SEND_RECORD_UPDATE_FAILED",
            extra={"handled": True, "send_id": send_id, "error": type(e).__name__},
        )


def _release_to_draft(s: Session, edition_id: int) -> None:
    edition = s.get(Edition, edition_id)
    if edition is not None and edition.status == "sending":
        edition.status = "draft"
        s.add(edition)
        s.commit()
        logger.warning("SEND_RELEASED_TO_DRAFT", extra={"edition_id": edition_id})


def send_test(s: Session, edition: Edition, test_email: str) -> Dict[str, Any]:
    if not is_valid_email(test_email.strip()):
        raise ValidationError("Invalid test email address")
    content = load_edition_content(s, edition)
    html = render_edition_html(content, TrackingLinks.direct(edition.id), first_name="Test")
    if not send_email(f"[TEST] {edition.subject_line}", html, [test_email.strip()]):
        raise PipelineError("Failed to send test email")
    logger.info("TEST_SEND_OK", extra={"edition_id": edition.id})
    return {"success": True, "message": "Test email sent"}


def send_edition(
    s: Session,
    edition_id: int,
    test_email: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    edition = s.get(Edition, edition_id)
    if edition is None:
        raise NotFoundError("Edition not found")

    if test_email:
        return send_test(s, edition, test_email)

    if edition.status in ("sending", "sent"):
        raise EditionAlreadySentError(f"Edition has already been {edition.status}", edition_id=edition.id)

    subscribers = s.exec(active_subscribers_query()).all()
    if not subscribers:
        raise PipelineError("No active subscribers found")

    group_a, group_b, remaining = split_cohorts(subscribers, seed=edition.id)
    subject_a = edition.subject_line
    subject_b = edition.subject_line_variant_b or edition.subject_line
    subject_winner = winning_subject(edition)

    edition.status = "sending"
    s.add(edition)
    s.commit()

    edition_ref = edition.id

    def X(**fields):
        return {"edition_id": edition_ref, **fields}

    logger.info(
        "SEND_START",
        extra=X(total=len(subscribers), cohort_a=len(group_a), cohort_b=len(group_b), remaining=len(remaining)),
    )

    t0 = time.perf_counter()
    sent = 0
    failed = 0
    attempted = 0
    try:
        content = load_edition_content(s, edition)
        plan: List[Tuple[Subscriber, str, str]] = (
            [(sub, VARIANT_A, subject_a) for sub in group_a]
            + [(sub, VARIANT_B, subject_b) for sub in group_b]
            + [(sub, VARIANT_WINNER, subject_winner) for sub in remaining]
        )

        for attempt, (sub, variant, subject) in enumerate(plan, start=1):
            attempted = attempt
            email = sub.email
            send_id: Optional[int] = None
            try:
                record = Send(edition_id=edition.id, subscriber_id=sub.id, variant=variant)
                s.add(record)
                s.commit()
                s.refresh(record)
                send_id = record.id

                links = TrackingLinks(edition_id=edition.id, send_id=record.id, subscriber_id=sub.id)
                html = render_edition_html(content, links, first_name=sub.first_name)
                ok = send_email(subject, html, [email])

                record.status = "sent" if ok else "failed"
                record.sent_at = utcnow() if ok else None
                record.error = None if ok else "email backend rejected the message"
                s.add(record)
                s.commit()
                if ok:
                    sent += 1
                else:
                    failed += 1
                    logger.warning("SEND_RECIPIENT_FAILED", extra=X(handled=True, subscriber_id=sub.id, variant=variant))
            except Exception as e:
                s.rollback()
                failed += 1
                logger.exception(
                    "SEND_RECIPIENT_ERROR",
                    extra=X(handled=True, subscriber_id=sub.id, variant=variant, error=type(e).__name__),
                )
                if send_id is not None:
                    _mark_failed(s, send_id, type(e).__name__)

            if attempt % SEND_BATCH_SIZE == 0 and attempt < len(plan):
                sleep(SEND_BATCH_PAUSE_SECONDS)

        edition.status = "sent"
        edition.total_sent = sent
        edition.sent_at = utcnow()
        s.add(edition)
        s.commit()
    except Exception as e:
        s.rollback()
        logger.exception("SEND_ABORTED", extra=X(handled=False, attempted=attempted, error=type(e).__name__))
        # nobody was mailed yet, so the draft can go out later
        if attempted == 0:
            _release_to_draft(s, edition_ref)
        raise

    logger.info(
        "SEND_DONE",
        extra=X(sent=sent, failed=failed, total=len(subscribers), elapsed_ms=round((time.perf_counter() - t0) * 1000)),
    )
    return {
        "success": True,
        "edition_id": edition.id,
        "sent": sent,
        "failed": failed,
        "total": len(subscribers),
        "cohorts": {VARIANT_A: len(group_a), VARIANT_B: len(group_b), VARIANT_WINNER: len(remaining)},
    }
