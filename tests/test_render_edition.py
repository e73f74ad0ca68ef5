# tests/test_render_edition.py
from weekly_brief.content import load_edition_content
from weekly_brief.models import FunFact, MysteryLink, Sponsor
from weekly_brief.render_edition import format_edition_date, render_edition_html, render_forward_html
from weekly_brief.tracker import TrackingLinks


def _content(session, make_edition, **kw):
    fact = FunFact(fact_text="Octopuses have three hearts.")
    link = MysteryLink(title="Curio", url="https://curio.test/page", description="A rabbit hole.")
    sponsor = Sponsor(name="Acme <Cloud>", website_url="https://acme.test", cta_text="Try Acme")
    session.add_all([fact, link, sponsor])
    session.commit()
    edition = make_edition(fun_fact_id=fact.id, mystery_link_id=link.id, sponsor_id=sponsor.id, **kw)
    return load_edition_content(session, edition)


def test_exactly_one_pixel_and_one_unsubscribe(session, make_edition):
    content = _content(session, make_edition)
    html = render_edition_html(content, TrackingLinks(edition_id=content.edition.id, send_id=7, subscriber_id=3))
    assert html.count("action=open") == 1
    assert html.count("action=unsubscribe") == 1
    assert "sid=7&amp;eid=" in html and "sub=3" in html


def test_sections_rendered_in_order(session, make_edition):
    content = _content(
        session, make_edition,
        worth_watching={"trends": {"title": "Edge AI", "content": "Phones run models."}, "events": {"title": "", "content": ""}},
    )
    html = render_edition_html(content, TrackingLinks(edition_id=content.edition.id), first_name="Mei")

    assert "Hi Mei," in html
    assert "Friday 16 October 2026" in html
    markers = ["Editor's Note", "Lead Story", "This Week's Signals", "Worth Watching", "Did You Know?",
               "SPONSORED", "Mystery Link", "Forward this newsletter"]
    positions = [html.index(m) for m in markers]
    assert positions == sorted(positions)
    assert "Edge AI" in html and "On the Horizon" not in html
    # user text is escaped
    assert "Acme &lt;Cloud&gt;" in html


def test_render_is_deterministic_and_optional_sections_drop(session, make_edition):
    edition = make_edition(editor_note=None)
    content = load_edition_content(session, edition)
    links = TrackingLinks(edition_id=edition.id, send_id=1, subscriber_id=1)
    html = render_edition_html(content, links)
    assert html == render_edition_html(content, links)
    assert "Hi there," in html
    for absent in ("Editor's Note", "Did You Know?", "SPONSORED", "Mystery Link"):
        assert absent not in html


def test_direct_links_skip_the_tracker(session, make_edition):
    content = _content(session, make_edition)
    html = render_edition_html(content, TrackingLinks.direct(content.edition.id))
    assert "/newsletter/track" not in html
    assert "action=open" not in html
    assert html.count("https://news.example.com/newsletter/unsubscribe") == 1
    assert 'href="https://curio.test/page"' in html


def test_forward_email(session, make_edition):
    edition = make_edition(status="sent")
    html = render_forward_html(edition, "Sam")
    assert "Sam thought you" in html
    assert "/newsletter/archive/2026-10-16" in html
    assert "action=open" not in html


def test_format_edition_date_passthrough():
    assert format_edition_date("2026-10-17") == "Saturday 17 October 2026"
    assert format_edition_date("soon") == "soon"
