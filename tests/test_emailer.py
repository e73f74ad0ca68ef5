# tests/test_emailer.py
from weekly_brief import emailer
from weekly_brief.emailer import html_to_text, send_email


def test_send_email_console(monkeypatch):
    monkeypatch.setattr(emailer, "SEND_MODE", "console")
    assert send_email("Test", "<p>hi</p>", ["a@example.com"]) is True


def test_no_recipients_is_a_failure():
    assert send_email("Test", "<p>hi</p>", []) is False


def test_resend_mode(monkeypatch, mocker):
    monkeypatch.setattr(emailer, "SEND_MODE", "resend")
    monkeypatch.setattr(emailer, "RESEND_API_KEY", "re_test")
    sent = mocker.patch("weekly_brief.emailer.resend.Emails.send", return_value={"id": "e1"})
    assert send_email("Hello", "<p>x</p>", ["a@example.com"], reply_to="desk@example.com") is True
    params = sent.call_args.args[0]
    assert params["to"] == ["a@example.com"] and params["reply_to"] == "desk@example.com"


def test_backend_error_returns_false(monkeypatch, mocker):
    monkeypatch.setattr(emailer, "SEND_MODE", "sendgrid")
    monkeypatch.setattr(emailer, "SENDGRID_API_KEY", "sg_test")
    mocker.patch("weekly_brief.emailer.requests.post", return_value=mocker.Mock(status_code=401, text="unauthorized"))
    assert send_email("Hello", "<p>x</p>", ["a@example.com"]) is False


def test_html_to_text():
    assert html_to_text("<style>p{}</style><p>One &amp; two</p><p>Three</p>") == "One & two\nThree"
