# tests/conftest.py
import pathlib, pytest
from datetime import timedelta
from types import SimpleNamespace
from dotenv import load_dotenv

# must run before anything imports weekly_brief.config
load_dotenv(pathlib.Path(__file__).parent / ".env.test", override=True)

from sqlmodel import SQLModel  # noqa: E402

from weekly_brief import models  # noqa: E402,F401
from weekly_brief.models import Article, Edition, Subscriber, TopStory, utcnow  # noqa: E402
from weekly_brief.store import engine, get_session  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture()
def session():
    with get_session() as s:
        yield s


@pytest.fixture()
def client():
    from fastapi.testclient import TestClient
    from weekly_brief.main import app
    return TestClient(app)


@pytest.fixture()
def admin_headers(session):
    from weekly_brief.auth import create_api_token
    token = create_api_token(session, "editor@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_article(session):
    def _make(title="Story", category="Policy", views=0, likes=0, days_ago=1, **kw):
        a = Article(
            title=title,
            slug=title.lower().replace(" ", "-"),
            excerpt=kw.pop("excerpt", f"{title} excerpt"),
            category=category,
            view_count=views,
            like_count=likes,
            published_at=utcnow() - timedelta(days=days_ago),
            **kw,
        )
        session.add(a)
        session.commit()
        session.refresh(a)
        return a
    return _make


@pytest.fixture()
def make_subscribers(session):
    def _make(n, confirmed=True, prefix="reader"):
        subs = [Subscriber(email=f"{prefix}{i}@example.com", first_name=f"R{i}", confirmed=confirmed) for i in range(n)]
        session.add_all(subs)
        session.commit()
        return subs
    return _make


@pytest.fixture()
def make_edition(session, make_article):
    """A draft edition with a hero and two top stories, built without the assembler."""
    def _make(edition_date="2026-10-16", status="draft", editor_note="A short note.", **kw):
        hero = make_article(f"Hero {edition_date}", views=100)
        stories = [make_article(f"Top {edition_date} {i}", views=50 - i) for i in (1, 2)]
        e = Edition(
            edition_date=edition_date,
            status=status,
            subject_line="Subject A",
            subject_line_variant_b="Subject B",
            permalink_url=f"/newsletter/archive/{edition_date}",
            hero_article_id=hero.id,
            editor_note=editor_note,
            **kw,
        )
        session.add(e)
        session.commit()
        session.refresh(e)
        for pos, a in enumerate(stories, start=1):
            session.add(TopStory(edition_id=e.id, article_id=a.id, original_article_id=a.id, position=pos))
        session.commit()
        return e
    return _make


class FakeCompletions:
    """Stands in for client.chat.completions; answers by prompt content."""

    def __init__(self, responder):
        self.responder = responder
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        prompt = kwargs["messages"][-1]["content"]
        text = self.responder(prompt)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def default_responder(prompt):
    if "Editor's Note" in prompt:
        return "Regulators across the region moved faster than the platforms expected."
    if "Worth Watching" in prompt:
        return '{"title": "Chips on the move", "content": "Signals suggest new fabs are coming."}'
    if "subject lines" in prompt:
        return '```json\n{"a": "Asia sets the AI pace", "b": "Five AI signals from Asia"}\n```'
    return "Why it matters for the region in one line."


@pytest.fixture()
def fake_ai(mocker):
    completions = FakeCompletions(default_responder)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    mocker.patch("weekly_brief.generator._get_client", return_value=client)
    return completions
