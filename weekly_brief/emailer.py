# weekly_brief/emailer.py
from typing import Iterable, List, Optional
import html as html_lib
import re
import smtplib, ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

import requests
import resend

from .config import (
    EMAIL_FROM, SEND_MODE,
    RESEND_API_KEY, SENDGRID_API_KEY,
    SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS,
    REQUESTS_TIMEOUT,
)
from .logging_setup import get_logger

logger = get_logger("weekly_brief.emailer")


def send_email(
    subject: str,
    html: str,
    to: Iterable[str],
    reply_to: Optional[str] = None,
    sender: str = EMAIL_FROM,
) -> bool:
    """
    Returns True on success, False on failure (the error is logged).
    Honors SEND_MODE = console | resend | sendgrid | smtp
    """
    recipients = [r for r in to if r]
    if not recipients:
        logger.warning("EMAIL_NO_RECIPIENTS", extra={"subject": subject})
        return False

    try:
        if SEND_MODE == "console":
            _send_console(subject, recipients, html)
            return True
        elif SEND_MODE == "resend":
            return _send_via_resend(subject, html, recipients, reply_to, sender)
        elif SEND_MODE == "sendgrid":
            return _send_via_sendgrid(subject, html, recipients, reply_to, sender)
        elif SEND_MODE == "smtp":
            msg = _build_multipart_message(subject, sender, recipients, html, html_to_text(html), reply_to)
            return _send_via_smtp(msg, recipients)
        else:
            logger.warning("EMAIL_UNKNOWN_MODE", extra={"send_mode": SEND_MODE})
            _send_console(subject, recipients, html)
            return True
    except Exception as e:
        logger.exception("EMAIL_SEND_FAILED", extra={"handled": True, "send_mode": SEND_MODE, "error": type(e).__name__})
        return False


def html_to_text(html: str) -> str:
    # plaintext part for SMTP clients that prefer it
    text = re.sub(r"(?is)<(script|style|title)[^>]*>.*?</\1>", "", html)
    text = re.sub(r"(?i)<br\s*/?>|</p>|</div>|</tr>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = html_lib.unescape(text)
    return "\n".join(ln.strip() for ln in text.splitlines() if ln.strip())


def _build_multipart_message(subject, sender, recipients, html, text, reply_to) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def _send_console(subject: str, recipients: List[str], html: str) -> None:
    preview = html if len(html) < 1200 else html[:1200] + "…"
    logger.info(f"[EMAIL console] To: {', '.join(recipients)} | Subject: {subject}\n{preview}")


def _send_via_resend(subject: str, html: str, recipients: List[str], reply_to: Optional[str], sender: str) -> bool:
    if not RESEND_API_KEY:
        raise RuntimeError("RESEND_API_KEY missing while SEND_MODE=resend")
    resend.api_key = RESEND_API_KEY
    params = {
        "from": sender,
        "to": recipients,
        "subject": subject,
        "html": html,
    }
    if reply_to:
        params["reply_to"] = reply_to
    resend.Emails.send(params)
    return True


def _send_via_sendgrid(subject: str, html: str, recipients: List[str], reply_to: Optional[str], sender: str) -> bool:
    if not SENDGRID_API_KEY:
        raise RuntimeError("SENDGRID_API_KEY missing while SEND_MODE=sendgrid")
    payload = {
        "personalizations": [{"to": [{"email": r} for r in recipients]}],
        "from": {"email": sender},
        "subject": subject,
        "content": [{"type": "text/html", "value": html}],
    }
    if reply_to:
        payload["reply_to"] = {"email": reply_to}
    r = requests.post(
        "https://api.sendgrid.com/v3/mail/send",
        headers={"Authorization": f"Bearer {SENDGRID_API_KEY}", "Content-Type": "application/json"},
        json=payload,
        timeout=REQUESTS_TIMEOUT,
    )
    if r.status_code >= 300:
        raise RuntimeError(f"SendGrid {r.status_code}: {r.text}")
    return True


def _send_via_smtp(msg: MIMEMultipart, recipients: List[str]) -> bool:
    if not SMTP_HOST:
        raise RuntimeError("SMTP_HOST missing while SEND_MODE=smtp")
    ctx = ssl.create_default_context()
    with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=REQUESTS_TIMEOUT) as server:
        server.ehlo()
        try:
            server.starttls(context=ctx)
            server.ehlo()
        except smtplib.SMTPException:
            # server may not offer STARTTLS (e.g. a local relay on port 25)
            pass
        if SMTP_USER:
            server.login(SMTP_USER, SMTP_PASS)
        server.sendmail(msg["From"], recipients, msg.as_string())
    return True
