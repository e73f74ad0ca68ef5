# weekly_brief/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
import pytz

from .config import TIMEZONE, ASSEMBLE_DAY, ASSEMBLE_HOUR, SEND_DAY, SEND_HOUR
from .workflow import run_weekly_assembly, run_auto_send
from .logging_setup import get_logger

logger = get_logger("weekly_brief.scheduler")
scheduler = BackgroundScheduler()

def _job_listener(event):
    if event.exception:
        logger.error(
            "JOB_ERROR",
            exc_info=event.exception,
            extra={"handled": False, "job_id": event.job_id, "run_time": str(event.scheduled_run_time)}
        )
    else:
        logger.info(
            "JOB_OK",
            extra={"job_id": event.job_id, "run_time": str(event.scheduled_run_time)}
        )

def add_jobs():
    tz = pytz.timezone(TIMEZONE)
    scheduler.add_job(
        run_weekly_assembly,
        CronTrigger(day_of_week=ASSEMBLE_DAY, hour=ASSEMBLE_HOUR, minute=0, timezone=tz),
        id="weekly_assembly",
        replace_existing=True,
    )
    scheduler.add_job(
        run_auto_send,
        CronTrigger(day_of_week=SEND_DAY, hour=SEND_HOUR, minute=0, timezone=tz),
        id="auto_send",
        replace_existing=True,
    )
    scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    logger.info(f"Jobs registered: weekly_assembly {ASSEMBLE_DAY} {ASSEMBLE_HOUR:02d}:00, "
                f"auto_send {SEND_DAY} {SEND_HOUR:02d}:00 {TIMEZONE}")

def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started")

def shutdown_scheduler(wait: bool = False):
    if scheduler.running:
        scheduler.shutdown(wait=wait)
        logger.info("APScheduler stopped")
