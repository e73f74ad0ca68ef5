# tests/test_sender.py
import pytest
from sqlmodel import select

from weekly_brief.errors import EditionAlreadySentError, PipelineError
from weekly_brief.models import Edition, Send, Subscriber, utcnow
from weekly_brief.sender import send_edition, split_cohorts, winning_subject


def test_split_cohorts_sizes_and_determinism():
    subs = [Subscriber(id=i, email=f"r{i}@example.com") for i in range(1, 106)]
    a, b, rest = split_cohorts(subs, seed=42, fraction=0.1)
    assert (len(a), len(b), len(rest)) == (10, 10, 85)
    assert {s.id for s in a + b + rest} == set(range(1, 106))
    # input order does not matter
    a2, b2, _ = split_cohorts(list(reversed(subs)), seed=42, fraction=0.1)
    assert [s.id for s in a] == [s.id for s in a2] and [s.id for s in b] == [s.id for s in b2]


def test_small_list_has_empty_test_cohorts():
    subs = [Subscriber(id=i, email=f"r{i}@example.com") for i in range(1, 10)]
    a, b, rest = split_cohorts(subs, seed=1)
    assert a == [] and b == [] and len(rest) == 9


def test_winning_subject_needs_strictly_more_b_opens():
    e = Edition(edition_date="2026-10-16", subject_line="A", subject_line_variant_b="B")
    assert winning_subject(e) == "A"
    e.variant_a_opens, e.variant_b_opens = 3, 3
    assert winning_subject(e) == "A"
    e.variant_b_opens = 4
    assert winning_subject(e) == "B"


def test_send_targets_only_active_subscribers(session, make_edition, make_subscribers, mocker):
    sent_to = []
    mocker.patch("weekly_brief.sender.send_email", side_effect=lambda subj, html, to: sent_to.extend(to) or True)
    make_subscribers(20)
    make_subscribers(3, confirmed=False, prefix="pending")
    gone = Subscriber(email="gone@example.com", confirmed=True, unsubscribed_at=utcnow())
    session.add(gone)
    session.commit()
    edition = make_edition()

    out = send_edition(session, edition.id, sleep=lambda s: None)

    assert out["sent"] == 20 and out["failed"] == 0 and out["total"] == 20
    assert out["cohorts"] == {"A": 2, "B": 2, "winner": 16}
    assert sum(out["cohorts"].values()) == out["total"]
    assert len(set(sent_to)) == 20 and "gone@example.com" not in sent_to
    session.expire_all()
    e = session.get(Edition, edition.id)
    assert e.status == "sent" and e.total_sent == 20 and e.sent_at is not None
    sends = session.exec(select(Send).where(Send.edition_id == edition.id)).all()
    assert len(sends) == 20 and all(s.status == "sent" for s in sends)


def test_each_recipient_gets_own_tracking_ids(session, make_edition, make_subscribers, mocker):
    bodies = {}
    mocker.patch("weekly_brief.sender.send_email", side_effect=lambda subj, html, to: bodies.update({to[0]: html}) or True)
    subs = make_subscribers(2)
    edition = make_edition()
    send_edition(session, edition.id, sleep=lambda s: None)
    for sub in subs:
        assert f"sub={sub.id}" in bodies[sub.email]


def test_failures_are_counted_and_batch_continues(session, make_edition, make_subscribers, mocker):
    def fake_send(subject, html, to):
        if to[0] == "reader1@example.com":
            return False
        if to[0] == "reader2@example.com":
            raise RuntimeError("boom")
        return True
    mocker.patch("weekly_brief.sender.send_email", side_effect=fake_send)
    make_subscribers(5)
    edition = make_edition()

    out = send_edition(session, edition.id, sleep=lambda s: None)

    assert (out["sent"], out["failed"], out["total"]) == (3, 2, 5)
    session.expire_all()
    assert session.get(Edition, edition.id).status == "sent"
    rows = dict(
        (email, (status, error))
        for email, status, error in session.exec(
            select(Subscriber.email, Send.status, Send.error).where(Send.subscriber_id == Subscriber.id)
        ).all()
    )
    assert rows["reader1@example.com"] == ("failed", "email backend rejected the message")
    assert rows["reader2@example.com"] == ("failed", "RuntimeError")
    assert rows["reader0@example.com"] == ("sent", None)
    assert not any(status == "pending" for status, _ in rows.values())


def test_setup_failure_releases_edition_back_to_draft(session, make_edition, make_subscribers, mocker):
    send = mocker.patch("weekly_brief.sender.send_email", return_value=True)
    make_subscribers(3)
    edition = make_edition()
    mocker.patch("weekly_brief.sender.load_edition_content", side_effect=RuntimeError("db went away"))

    with pytest.raises(RuntimeError):
        send_edition(session, edition.id, sleep=lambda s: None)

    session.expire_all()
    assert session.get(Edition, edition.id).status == "draft"
    assert session.exec(select(Send)).all() == []
    assert send.call_count == 0

    mocker.stopall()
    mocker.patch("weekly_brief.sender.send_email", return_value=True)
    assert send_edition(session, edition.id, sleep=lambda s: None)["sent"] == 3


def test_pause_between_batches(session, make_edition, make_subscribers, mocker):
    mocker.patch("weekly_brief.sender.send_email", return_value=True)
    make_subscribers(250)
    edition = make_edition()
    pauses = []
    send_edition(session, edition.id, sleep=pauses.append)
    assert pauses == [1.0, 1.0]


def test_second_production_send_is_rejected(session, make_edition, make_subscribers, mocker):
    send = mocker.patch("weekly_brief.sender.send_email", return_value=True)
    make_subscribers(3)
    edition = make_edition()
    send_edition(session, edition.id, sleep=lambda s: None)
    with pytest.raises(EditionAlreadySentError):
        send_edition(session, edition.id, sleep=lambda s: None)
    assert send.call_count == 3


def test_no_active_subscribers(session, make_edition):
    edition = make_edition()
    with pytest.raises(PipelineError, match="No active subscribers"):
        send_edition(session, edition.id)
    session.expire_all()
    assert session.get(Edition, edition.id).status == "draft"


def test_test_send_writes_no_send_rows(session, make_edition, make_subscribers, mocker):
    send = mocker.patch("weekly_brief.sender.send_email", return_value=True)
    make_subscribers(3)
    edition = make_edition()

    out = send_edition(session, edition.id, test_email="qa@example.com")

    assert out == {"success": True, "message": "Test email sent"}
    subject, html, to = send.call_args.args
    assert subject == "[TEST] Subject A" and to == ["qa@example.com"] and "Hi Test," in html
    assert session.exec(select(Send)).all() == []
    session.expire_all()
    assert session.get(Edition, edition.id).status == "draft"


def test_send_endpoint(client, admin_headers, make_edition, make_subscribers, mocker):
    mocker.patch("weekly_brief.sender.send_email", return_value=True)
    make_subscribers(2)
    edition = make_edition()
    r = client.post("/newsletter/send", json={"edition_id": edition.id}, headers=admin_headers)
    assert r.status_code == 200 and r.json()["sent"] == 2
    again = client.post("/newsletter/send", json={"edition_id": edition.id}, headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "Edition has already been sent"
