# weekly_brief/workflow.py
"""
Scheduled jobs. Each run opens its own session and writes one AutomationLog row.

- run_weekly_assembly: assemble today's edition, then generate its AI content
- run_auto_send:       send the latest ready draft (editor's note present, not future-dated)
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional
import time
import uuid

from sqlmodel import Session, select

from .assembler import assemble_edition
from .errors import EditionExistsError
from .generator import generate_content
from .logging_setup import get_logger
from .models import AutomationLog, Edition, utcnow
from .sender import send_edition
from .store import get_session

logger = get_logger("weekly_brief.workflow")


def _log_run(job_name: str, status: str, started_at: datetime, details: Dict[str, Any]) -> None:
    # separate session: a failed job has usually poisoned its own
    try:
        with get_session() as s:
            s.add(AutomationLog(job_name=job_name, status=status, started_at=started_at, details=details))
            s.commit()
    except Exception as e:
        logger.exception("AUTOMATION_LOG_FAILED", extra={"handled": True, "job": job_name, "error": type(e).__name__})


def find_ready_edition(s: Session, today: str) -> Optional[Edition]:
    return s.exec(
        select(Edition)
        .where(Edition.status == "draft")
        .where(Edition.editor_note.is_not(None))
        .where(Edition.edition_date <= today)
        .order_by(Edition.edition_date.desc())
    ).first()


def run_weekly_assembly(edition_date: Optional[str] = None) -> Dict[str, Any]:
    run_id = uuid.uuid4().hex[:8]
    started = utcnow()
    t0 = time.perf_counter()

    def X(**fields):
        return {"run_id": run_id, "job": "weekly_assembly", **fields}

    logger.info("JOB_START", extra=X(step="start"))
    try:
        with get_session() as s:
            try:
                assembled = assemble_edition(s, edition_date=edition_date)
            except EditionExistsError as e:
                logger.info("EDITION_EXISTS_SKIP", extra=X(step="assemble", handled=True, edition_id=e.edition_id))
                details = {"edition_id": e.edition_id, "skipped": True}
                _log_run("weekly-assembly", "skipped", started, details)
                return details
            generated = generate_content(s, assembled["edition_id"])
    except Exception as e:
        logger.exception("JOB_FATAL", extra=X(step="fatal", handled=False, error=type(e).__name__))
        _log_run("weekly-assembly", "failed", started, {"error": str(e)})
        raise

    details = {
        "edition_id": assembled["edition_id"],
        "edition_date": assembled["edition_date"],
        "top_stories": assembled["top_stories_count"],
        "sections": generated.get("sections", []),
    }
    _log_run("weekly-assembly", "completed", started, details)
    logger.info("JOB_OK", extra=X(step="end", elapsed_ms=round((time.perf_counter() - t0) * 1000), **details))
    return details


def run_auto_send(sleep: Callable[[float], None] = time.sleep) -> Dict[str, Any]:
    started = utcnow()
    today = started.strftime("%Y-%m-%d")
    logger.info("AUTO_SEND_TRIGGERED", extra={"today": today})
    try:
        with get_session() as s:
            edition = find_ready_edition(s, today)
            if edition is None:
                logger.info("AUTO_SEND_NOTHING_READY", extra={"today": today})
                result = {"message": "No draft edition ready to send", "skipped": True}
                _log_run("auto-send-newsletter", "skipped", started, result)
                return result
            edition_id = edition.id
            sent = send_edition(s, edition_id, sleep=sleep)
    except Exception as e:
        logger.exception("AUTO_SEND_FAILED", extra={"handled": False, "error": type(e).__name__})
        _log_run("auto-send-newsletter", "failed", started, {"error": str(e)})
        raise

    result = {"success": True, "edition_id": edition_id, "result": sent}
    _log_run("auto-send-newsletter", "completed", started, result)
    return result
