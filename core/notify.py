"""
core/notify.py — Outbound Notifications
=========================================
Email goes through SMTP when SMTP_HOST is configured; otherwise the message
is only logged. SMS delivery is provider specific and is logged here.

Both are fire-and-forget: routes schedule them with FastAPI BackgroundTasks,
failures are logged and never retried.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from config import settings

logger = logging.getLogger("ardhi.notify")


def _send_smtp(to_email: str, subject: str, body: str):
    msg = MIMEMultipart()
    msg["From"] = settings.MAIL_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain"))
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
        smtp.starttls()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


async def send_mail(to_email: str, subject: str, body: str) -> bool:
    if not settings.SMTP_HOST:
        logger.info(f"MAIL (not sent, SMTP_HOST unset) to={to_email} subject={subject!r}")
        return False
    try:
        await asyncio.to_thread(_send_smtp, to_email, subject, body)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning(f"send_mail to {to_email} failed: {exc}")
        return False
    logger.info(f"MAIL sent to={to_email} subject={subject!r}")
    return True


async def send_sms(phone_number: str, body: str) -> bool:
    logger.info(f"SMS from={settings.SMS_FROM_NUMBER or '-'} to={phone_number}: {body[:60]}")
    return True


async def notify(email: str = None, subject: str = None, body: str = "", phone_number: str = None):
    """Send to whichever channels were given."""
    if email:
        await send_mail(email, subject or settings.MAIL_DEFAULT_SUBJECT, body)
    if phone_number:
        await send_sms(phone_number, body)
