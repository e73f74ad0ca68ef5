# tests/test_subscriptions.py
import pytest
from sqlmodel import select

from weekly_brief.errors import NotFoundError, ValidationError
from weekly_brief.models import Subscriber, Unsubscribe
from weekly_brief.subscriptions import forward_edition, sanitize_name, unsubscribe


def test_unsubscribe_validation(session):
    with pytest.raises(ValidationError, match="Email is required"):
        unsubscribe(session, "")
    with pytest.raises(ValidationError, match="Invalid email format"):
        unsubscribe(session, "not-an-email")


def test_unsubscribe_marks_subscriber_and_records_reason(session, make_subscribers):
    make_subscribers(1)
    out = unsubscribe(session, "  Reader0@Example.com ", reason="too_frequent", feedback="x" * 900)
    assert out["success"] is True
    session.expire_all()
    sub = session.exec(select(Subscriber).where(Subscriber.email == "reader0@example.com")).one()
    assert sub.unsubscribed_at is not None
    row = session.exec(select(Unsubscribe)).one()
    assert row.reason == "too_frequent" and len(row.feedback) == 500


def test_unsubscribe_unknown_email_still_recorded(session):
    unsubscribe(session, "stranger@example.com")
    assert session.exec(select(Unsubscribe)).one().email == "stranger@example.com"


def test_sanitize_name():
    assert sanitize_name('<b>Sam</b> & "co"') == "bSam/b  co"


def test_forward_requires_sent_edition(session, make_edition, mocker):
    send = mocker.patch("weekly_brief.subscriptions.send_email", return_value=True)
    draft = make_edition()
    with pytest.raises(NotFoundError):
        forward_edition(session, draft.id, "Sam", "friend@example.com")
    with pytest.raises(ValidationError):
        forward_edition(session, draft.id, "Sam", "friend-at-example")
    with pytest.raises(ValidationError):
        forward_edition(session, draft.id, "", "friend@example.com")
    assert send.call_count == 0


def test_forward_endpoint(client, make_edition, mocker):
    send = mocker.patch("weekly_brief.subscriptions.send_email", return_value=True)
    edition = make_edition(status="sent")
    r = client.post("/newsletter/forward",
                    json={"edition_id": edition.id, "sender_name": "Sam", "recipient_email": "friend@example.com"})
    assert r.status_code == 200 and r.json()["success"] is True
    subject, _, to = send.call_args.args
    assert subject == "Sam forwarded: Subject A" and to == ["friend@example.com"]

    missing = client.post("/newsletter/forward", json={"sender_name": "Sam"})
    assert missing.status_code == 400
    assert missing.json()["error"].startswith("Missing required fields")


def test_unsubscribe_endpoint(client):
    assert client.post("/newsletter/unsubscribe", json={"email": "bad"}).status_code == 400
    r = client.post("/newsletter/unsubscribe", json={"email": "someone@example.com"})
    assert r.json() == {"success": True, "message": "Successfully unsubscribed"}


def test_archive_only_serves_sent_editions(client, make_edition):
    make_edition(edition_date="2026-10-09", status="sent")
    make_edition(edition_date="2026-10-16")
    r = client.get("/newsletter/archive/2026-10-09")
    assert r.status_code == 200 and "text/html" in r.headers["content-type"]
    assert "Friday 9 October 2026" in r.text
    assert "/newsletter/track" not in r.text
    assert "https://news.example.com/newsletter/unsubscribe" in r.text
    assert client.get("/newsletter/archive/2026-10-16").status_code == 404
