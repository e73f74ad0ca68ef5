import os
from dotenv import load_dotenv
from pathlib import Path

# Go up one level from weekly_brief/ to root/
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Content store
DB_URL = os.getenv("DB_URL", "sqlite:///weekly_brief.db")

# Public site + tracker
SITE_URL = os.getenv("SITE_URL", "https://example.com").rstrip("/")
TRACKING_BASE_URL = os.getenv("TRACKING_BASE_URL", SITE_URL).rstrip("/")
TRACKING_IP_SALT = os.getenv("TRACKING_IP_SALT", "salt")
NEWSLETTER_NAME = os.getenv("NEWSLETTER_NAME", "Weekly Brief")

# AI gateway (any OpenAI-compatible chat-completion endpoint)
AI_API_KEY = os.getenv("AI_API_KEY") or os.getenv("OPENAI_API_KEY", "")
AI_BASE_URL = os.getenv("AI_BASE_URL") or None
AI_MODEL = os.getenv("AI_MODEL", "gpt-4o-mini")
AI_SUMMARY_MODEL = os.getenv("AI_SUMMARY_MODEL", AI_MODEL)
AI_TIMEOUT = float(os.getenv("AI_TIMEOUT", "60"))

# Email
EMAIL_FROM = os.getenv("EMAIL_FROM", "Weekly Brief <newsletter@example.com>")
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY", "")
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")
REQUESTS_TIMEOUT = float(os.getenv("REQUESTS_TIMEOUT", "15"))
# console | resend | sendgrid | smtp
SEND_MODE = os.getenv(
    "SEND_MODE",
    "resend" if RESEND_API_KEY else "sendgrid" if SENDGRID_API_KEY else "smtp" if SMTP_HOST else "console",
).lower()

# Sender pacing + A/B split
SEND_BATCH_SIZE = int(os.getenv("SEND_BATCH_SIZE", "100"))
SEND_BATCH_PAUSE_SECONDS = float(os.getenv("SEND_BATCH_PAUSE_SECONDS", "1.0"))
AB_TEST_FRACTION = float(os.getenv("AB_TEST_FRACTION", "0.1"))

# Scheduler
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() in ("1", "true", "yes")
TIMEZONE = os.getenv("TIMEZONE", "Asia/Singapore")
ASSEMBLE_DAY = os.getenv("ASSEMBLE_DAY", "thu")
ASSEMBLE_HOUR = int(os.getenv("ASSEMBLE_HOUR", "9"))
SEND_DAY = os.getenv("SEND_DAY", "fri")
SEND_HOUR = int(os.getenv("SEND_HOUR", "8"))
