import smtplib

from config import settings
from core import notify


async def test_mail_is_only_logged_without_smtp_host():
    assert await notify.send_mail("a@example.com", "Hi", "Body") is False


async def test_mail_goes_through_smtp(monkeypatch):
    sent = []
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(notify, "_send_smtp", lambda to, subject, body: sent.append((to, subject, body)))

    await notify.notify(email="a@example.com", body="Your land was approved")
    assert sent == [("a@example.com", settings.MAIL_DEFAULT_SUBJECT, "Your land was approved")]


async def test_smtp_failure_is_reported_not_raised(monkeypatch):
    def boom(*args):
        raise smtplib.SMTPException("relay denied")

    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(notify, "_send_smtp", boom)
    assert await notify.send_mail("a@example.com", "Hi", "Body") is False


async def test_sms_is_dispatched():
    assert await notify.send_sms("+254700000001", "Hello") is True
