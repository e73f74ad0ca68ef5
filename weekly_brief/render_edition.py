from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional
import re

from jinja2 import Environment

from .config import NEWSLETTER_NAME, SITE_URL
from .content import EditionContent
from .tracker import TrackingLinks

# Email clients ignore <style> blocks, so every style is inline.
FONT_SANS = "-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif"
FONT_SERIF = "Georgia, 'Times New Roman', serif"

# key -> (icon, title colour, background, border)
WORTH_WATCHING_STYLES = {
    "trends": ("📈", "#1e40af", "#eff6ff", "#3b82f6"),
    "events": ("📅", "#b45309", "#fffbeb", "#f59e0b"),
    "spotlight": ("🚀", "#166534", "#f0fdf4", "#22c55e"),
    "policy": ("⚖️", "#7e22ce", "#faf5ff", "#a855f7"),
}


def format_edition_date(value: str) -> str:
    """'2026-10-16' -> 'Friday 16 October 2026'."""
    try:
        d = datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        return value or ""
    return f"{d:%A} {d.day} {d:%B %Y}"


def split_paragraphs(text: Optional[str]) -> List[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", text or "") if p.strip()]


_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
_env.filters["edition_date"] = format_edition_date
_env.filters["paragraphs"] = split_paragraphs

EDITION_TPL = _env.from_string("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{{ name }} - {{ edition.edition_date|edition_date }}</title>
</head>
<body style="margin:0;padding:0;background-color:#f1f5f9;font-family:{{ sans }};">
{% set pixel = links.pixel() %}
{% if pixel %}
<img src="{{ pixel }}" width="1" height="1" alt="" style="display:block;border:0;width:1px;height:1px;" />
{% endif %}
<table width="100%" cellpadding="0" cellspacing="0" border="0" style="background-color:#f1f5f9;">
<tr><td align="center" style="padding:32px 16px;">
<table width="600" cellpadding="0" cellspacing="0" border="0" style="max-width:600px;width:100%;background:#ffffff;border-radius:16px;">

  <tr><td style="padding:32px 32px 8px 32px;text-align:center;">
    <div style="font-size:26px;font-weight:800;color:#0f172a;font-family:{{ sans }};">{{ name }}</div>
    <div style="font-size:13px;color:#64748b;margin-top:6px;font-family:{{ sans }};">{{ edition.edition_date|edition_date }}</div>
    <div style="font-size:12px;margin-top:6px;"><a href="{{ links.click(archive_url, 'archive') }}" style="color:#6366f1;">View in browser</a></div>
  </td></tr>

  <tr><td style="padding:16px 32px 0 32px;">
    <p style="font-size:17px;color:#0f172a;margin:0;font-family:{{ sans }};">{{ greeting }}</p>
  </td></tr>

{% if edition.editor_note %}
  <tr><td style="padding:20px 32px 0 32px;">
    <div style="background:#f9fafb;border-left:4px solid #6366f1;padding:18px 20px;border-radius:8px;">
      <div style="font-size:12px;font-weight:700;text-transform:uppercase;letter-spacing:1px;color:#6366f1;font-family:{{ sans }};">Editor's Note</div>
      {% for p in edition.editor_note|paragraphs %}
      <p style="margin:10px 0 0 0;font-size:15px;line-height:1.7;color:#334155;font-family:{{ serif }};">{{ p }}</p>
      {% endfor %}
    </div>
  </td></tr>
{% endif %}

{% if hero %}
  <tr><td style="padding:24px 32px 0 32px;">
    <div style="border:1px solid #e5e7eb;border-radius:12px;overflow:hidden;">
      {% if hero.featured_image_url %}
      <a href="{{ links.click(article_url(hero), 'hero', hero.id) }}"><img src="{{ hero.featured_image_url }}" alt="{{ hero.title }}" width="100%" style="display:block;width:100%;height:auto;max-height:280px;" /></a>
      {% endif %}
      <div style="padding:24px;">
        <span style="display:inline-block;background:#dc2626;color:#ffffff;font-size:11px;font-weight:700;padding:4px 10px;border-radius:20px;text-transform:uppercase;font-family:{{ sans }};">Lead Story</span>
        <a href="{{ links.click(article_url(hero), 'hero', hero.id) }}" style="display:block;margin-top:14px;color:#0f172a;text-decoration:none;font-size:22px;font-weight:800;line-height:1.3;font-family:{{ sans }};">{{ hero.title }}</a>
        <p style="margin:12px 0 0 0;color:#475569;font-size:15px;line-height:1.7;font-family:{{ serif }};">{{ hero.excerpt or "" }}</p>
      </div>
    </div>
  </td></tr>
{% endif %}

{% if stories %}
  <tr><td style="padding:28px 32px 0 32px;">
    <div style="font-size:13px;font-weight:700;text-transform:uppercase;letter-spacing:1px;color:#1e293b;font-family:{{ sans }};">This Week's Signals</div>
    {% for story, article in stories %}
    <div style="border-bottom:1px solid #e5e7eb;padding:16px 0;">
      <span style="display:inline-block;background:#f1f5f9;color:#6366f1;font-size:10px;font-weight:700;padding:3px 8px;border-radius:12px;text-transform:uppercase;font-family:{{ sans }};">{{ article.category or "General" }}</span>
      <a href="{{ links.click(article_url(article), 'top' ~ story.position, article.id) }}" style="display:block;margin-top:8px;color:#0f172a;text-decoration:none;font-size:17px;font-weight:700;line-height:1.35;font-family:{{ sans }};">{{ article.title }}</a>
      <p style="margin:8px 0 0 0;color:#64748b;font-size:14px;line-height:1.5;font-family:{{ serif }};">{{ (story.ai_summary or article.excerpt or "")|truncate(180) }}</p>
    </div>
    {% endfor %}
  </td></tr>
{% endif %}

{% if watching %}
  <tr><td style="padding:28px 32px 0 32px;">
    <div style="font-size:13px;font-weight:700;text-transform:uppercase;letter-spacing:1px;color:#1e293b;font-family:{{ sans }};">Worth Watching</div>
    {% for card in watching %}
    <div style="margin-top:12px;background:{{ card.background }};border-left:4px solid {{ card.border }};border-radius:10px;padding:16px 18px;">
      <div style="font-size:15px;font-weight:700;color:{{ card.color }};font-family:{{ sans }};">{{ card.icon }} {{ card.title }}</div>
      <p style="margin:6px 0 0 0;font-size:14px;line-height:1.6;color:#334155;font-family:{{ serif }};">{{ card.content }}</p>
    </div>
    {% endfor %}
  </td></tr>
{% endif %}

{% if fun_fact %}
  <tr><td style="padding:28px 32px 0 32px;">
    <div style="background:#fefce8;border-radius:10px;padding:16px 18px;">
      <div style="font-size:12px;font-weight:700;text-transform:uppercase;letter-spacing:1px;color:#a16207;font-family:{{ sans }};">Did You Know?</div>
      <p style="margin:8px 0 0 0;font-size:14px;line-height:1.6;color:#422006;font-family:{{ serif }};">{{ fun_fact.fact_text }}</p>
    </div>
  </td></tr>
{% endif %}

{% if sponsor %}
  <tr><td style="padding:28px 32px 0 32px;">
    <div style="background:#312e81;border-radius:12px;padding:20px;text-align:center;">
      <div style="font-size:11px;color:#c7d2fe;letter-spacing:1px;font-family:{{ sans }};">SPONSORED</div>
      {% if sponsor.banner_image_url %}
      <img src="{{ sponsor.banner_image_url }}" alt="{{ sponsor.name }}" style="max-width:100%;height:auto;border-radius:8px;margin-top:12px;" />
      {% endif %}
      <div style="font-size:18px;font-weight:700;color:#ffffff;margin-top:10px;font-family:{{ sans }};">{{ sponsor.name }}</div>
      <a href="{{ links.click(sponsor.website_url, 'sponsor') }}" style="display:inline-block;margin-top:12px;background:#ffffff;color:#312e81;padding:10px 24px;border-radius:6px;text-decoration:none;font-weight:700;font-family:{{ sans }};">{{ sponsor.cta_text or "Learn More" }}</a>
    </div>
  </td></tr>
{% endif %}

{% if mystery_link %}
  <tr><td style="padding:28px 32px 0 32px;">
    <div style="background:#1e1b4b;border-radius:12px;padding:24px;text-align:center;">
      <div style="font-size:12px;font-weight:700;color:#a5b4fc;letter-spacing:1.5px;text-transform:uppercase;font-family:{{ sans }};">Mystery Link</div>
      <p style="margin:10px 0 0 0;font-size:14px;color:#e0e7ff;font-family:{{ serif }};">{{ mystery_link.description or "Something curious from the corners of the internet." }}</p>
      <a href="{{ links.click(mystery_link.url, 'mystery') }}" style="display:inline-block;margin-top:14px;background:#6366f1;color:#ffffff;padding:10px 24px;border-radius:6px;text-decoration:none;font-weight:700;font-family:{{ sans }};">Take Me There</a>
    </div>
  </td></tr>
{% endif %}

  <tr><td style="padding:32px;text-align:center;">
    <p style="margin:0;font-size:14px;color:#334155;font-family:{{ sans }};">Know someone who would enjoy this? <a href="{{ links.click(forward_url, 'forward') }}" style="color:#6366f1;">Forward this newsletter</a></p>
    <p style="margin:24px 0 0 0;font-size:12px;color:#94a3b8;font-family:{{ sans }};">You are receiving this because you subscribed to {{ name }}.</p>
    <p style="margin:8px 0 0 0;font-size:12px;"><a href="{{ links.unsubscribe() }}" style="color:#94a3b8;">Unsubscribe</a></p>
  </td></tr>

</table>
</td></tr>
</table>
</body>
</html>
""")


def article_url(article) -> str:
    return f"{SITE_URL}/article/{article.slug}"


def _worth_watching_cards(worth_watching: Optional[Dict[str, Any]]) -> List[Dict[str, str]]:
    cards = []
    for key, (icon, color, background, border) in WORTH_WATCHING_STYLES.items():
        section = (worth_watching or {}).get(key)
        if not isinstance(section, dict) or not section.get("content"):
            continue
        cards.append({
            "icon": icon, "color": color, "background": background, "border": border,
            "title": section.get("title") or key.title(),
            "content": section["content"],
        })
    return cards


def render_edition_html(content: EditionContent, links: TrackingLinks, first_name: Optional[str] = None) -> str:
    """
    edition + stories + extras -> a complete HTML email.

    Pure and deterministic: the only per-recipient inputs are `links` (tracking
    ids) and `first_name`. Exactly one unsubscribe link, and exactly one open
    pixel when `links` records (none for `TrackingLinks.direct`).
    """
    edition = content.edition
    permalink = edition.permalink_url or f"/newsletter/archive/{edition.edition_date}"
    return EDITION_TPL.render(
        name=NEWSLETTER_NAME,
        sans=FONT_SANS,
        serif=FONT_SERIF,
        edition=edition,
        hero=content.hero,
        stories=content.stories,
        watching=_worth_watching_cards(edition.worth_watching),
        fun_fact=content.fun_fact,
        sponsor=content.sponsor,
        mystery_link=content.mystery_link,
        links=links,
        greeting=f"Hi {first_name}," if first_name else "Hi there,",
        article_url=article_url,
        archive_url=f"{SITE_URL}{permalink}",
        forward_url=f"{SITE_URL}/newsletter/forward?edition={edition.id}",
    )


FORWARD_TPL = _env.from_string("""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Forwarded: {{ name }}</title></head>
<body style="margin:0;padding:0;background-color:#f1f5f9;font-family:{{ sans }};">
<table width="100%" cellpadding="0" cellspacing="0" border="0" style="background-color:#f1f5f9;">
<tr><td align="center" style="padding:40px 20px;">
<table width="600" cellpadding="0" cellspacing="0" border="0" style="max-width:600px;width:100%;">
  <tr><td style="background:#6366f1;padding:32px;border-radius:16px 16px 0 0;">
    <h1 style="margin:0;font-size:24px;font-weight:700;color:#ffffff;">{{ sender_name }} thought you'd enjoy this</h1>
    <p style="margin:12px 0 0 0;font-size:16px;color:#e0e7ff;line-height:1.6;">They've forwarded this edition of {{ name }} to you.</p>
  </td></tr>
  <tr><td style="background:#ffffff;padding:32px;">
    <span style="display:inline-block;background:#f1f5f9;color:#6366f1;font-size:12px;font-weight:600;padding:6px 12px;border-radius:20px;text-transform:uppercase;">{{ edition.edition_date|edition_date }}</span>
    <h2 style="margin:16px 0 0 0;font-size:20px;font-weight:700;color:#0f172a;">{{ edition.subject_line or name }}</h2>
    <a href="{{ newsletter_url }}" style="display:inline-block;margin-top:24px;background:#0f172a;color:#ffffff;font-size:14px;font-weight:600;padding:14px 28px;border-radius:10px;text-decoration:none;">Read the Full Newsletter</a>
  </td></tr>
  <tr><td style="background:#0f172a;padding:32px;border-radius:0 0 16px 16px;text-align:center;">
    <h3 style="margin:0;font-size:18px;font-weight:700;color:#ffffff;">Want to receive these directly?</h3>
    <a href="{{ subscribe_url }}" style="display:inline-block;margin-top:20px;background:#6366f1;color:#ffffff;font-size:14px;font-weight:600;padding:12px 24px;border-radius:8px;text-decoration:none;">Subscribe Free</a>
  </td></tr>
  <tr><td style="padding:24px;text-align:center;">
    <p style="margin:0;font-size:12px;color:#94a3b8;line-height:1.6;">This email was forwarded to you by {{ sender_name }}.<br/>Your email address was only used to deliver this message and is not stored or subscribed to any list.</p>
  </td></tr>
</table>
</td></tr>
</table>
</body>
</html>
""")


def render_forward_html(edition, sender_name: str) -> str:
    permalink = edition.permalink_url or f"/newsletter/archive/{edition.edition_date}"
    return FORWARD_TPL.render(
        name=NEWSLETTER_NAME,
        sans=FONT_SANS,
        edition=edition,
        sender_name=sender_name,
        newsletter_url=f"{SITE_URL}{permalink}",
        subscribe_url=f"{SITE_URL}/newsletter?ref=forwarded",
    )
