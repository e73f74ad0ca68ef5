# weekly_brief/assembler.py
"""
Edition assembler: builds a draft edition for one calendar date.

Steps:
- refuse a second edition for the same date
- rank the last week's published articles by views/likes
- hero = most popular; up to 5 top stories diversified by category
- rotate in one unused mystery link and the least recently used fun fact
- attach the highest-priority active sponsor
"""
from __future__ import annotations

import random
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from sqlmodel import Session, select

from .errors import EditionExistsError, PipelineError, ValidationError
from .logging_setup import get_logger
from .models import Article, Edition, FunFact, MysteryLink, Sponsor, TopStory, utcnow
from .ranker import EXCLUDED_ARTICLE_TYPES, LOOKBACK_DAYS, diversify_by_category, pick_hero, rank_candidates

logger = get_logger("weekly_brief.assembler")

# Editorial subject-line pairs (A, B); no emojis.
SUBJECT_LINE_VARIANTS: Tuple[Tuple[str, str], ...] = (
    ("This week in AI across Asia", "AI in ASIA Weekly Brief"),
    ("AI in ASIA Weekly Brief", "What mattered in AI this week across Asia"),
    ("What mattered in AI this week across Asia", "This week in AI across Asia"),
)


def default_subject_lines(edition_date: str) -> Tuple[str, str]:
    # seeded on the date so re-running a failed assembly gives the same pair
    return random.Random(edition_date).choice(SUBJECT_LINE_VARIANTS)


def permalink_for(edition_date: str) -> str:
    return f"/newsletter/archive/{edition_date}"


def _normalise_date(edition_date: Optional[str], now: datetime) -> str:
    if not edition_date:
        return now.strftime("%Y-%m-%d")
    try:
        return datetime.strptime(edition_date, "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"edition_date must be YYYY-MM-DD, got {edition_date!r}")


def select_mystery_link(s: Session, now: datetime) -> Optional[MysteryLink]:
    links = s.exec(
        select(MysteryLink).where(MysteryLink.is_active == True).order_by(MysteryLink.created_at)  # noqa: E712
    ).all()
    for link in links:
        if link.used_in_editions:
            continue
        if link.expires_at is not None and link.expires_at <= now:
            continue
        return link
    return None


def select_fun_fact(s: Session) -> Optional[FunFact]:
    facts = s.exec(select(FunFact).where(FunFact.is_active == True)).all()  # noqa: E712
    if not facts:
        return None
    # never-used facts first, then oldest use; id keeps ties stable
    never = datetime.min.replace(tzinfo=timezone.utc)
    return min(facts, key=lambda f: (f.last_used_at is not None, f.last_used_at or never, f.id))


def select_sponsor(s: Session) -> Optional[Sponsor]:
    return s.exec(
        select(Sponsor).where(Sponsor.is_active == True).order_by(Sponsor.priority.desc(), Sponsor.id)  # noqa: E712
    ).first()


def assemble_edition(
    s: Session,
    edition_date: Optional[str] = None,
    created_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or utcnow()
    target = _normalise_date(edition_date, now)
    t0 = time.perf_counter()

    def X(**fields):
        return {"edition_date": target, **fields}

    logger.info("ASSEMBLE_START", extra=X(step="start"))

    existing = s.exec(select(Edition).where(Edition.edition_date == target)).first()
    if existing:
        logger.info("ASSEMBLE_DUPLICATE", extra=X(step="check", handled=True, edition_id=existing.id))
        raise EditionExistsError(target, existing.id)

    # --- Rank ---
    since = now - timedelta(days=LOOKBACK_DAYS)
    candidates = s.exec(
        select(Article)
        .where(Article.status == "published")
        .where(Article.article_type.not_in(EXCLUDED_ARTICLE_TYPES))
        .where(Article.published_at >= since)
        .order_by(Article.id)
    ).all()
    ranked = rank_candidates(candidates, now)
    hero = pick_hero(ranked)
    if hero is None:
        logger.warning("ASSEMBLE_NO_ARTICLES", extra=X(step="rank", candidates=len(candidates)))
        raise PipelineError("No published articles found for newsletter")

    top = diversify_by_category(ranked, hero=hero)
    logger.info(
        "RANKING_DONE",
        extra=X(step="rank", candidates=len(ranked), hero_article_id=hero.id, top_story_ids=[a.id for a in top]),
    )

    # --- Extras ---
    mystery = select_mystery_link(s, now)
    fact = select_fun_fact(s)
    sponsor = select_sponsor(s)

    subject_a, subject_b = default_subject_lines(target)
    edition = Edition(
        edition_date=target,
        status="draft",
        subject_line=subject_a,
        subject_line_variant_b=subject_b,
        permalink_url=permalink_for(target),
        created_by=created_by,
        hero_article_id=hero.id,
        mystery_link_id=mystery.id if mystery else None,
        fun_fact_id=fact.id if fact else None,
        sponsor_id=sponsor.id if sponsor else None,
    )
    s.add(edition)
    s.flush()  # assigns edition.id for the joins below

    for position, article in enumerate(top, start=1):
        s.add(TopStory(
            edition_id=edition.id,
            article_id=article.id,
            original_article_id=article.id,
            position=position,
        ))

    # mark extras consumed; JSON columns need a new list to register the change
    if mystery:
        mystery.used_in_editions = [*(mystery.used_in_editions or []), edition.id]
        s.add(mystery)
    if fact:
        fact.last_used_at = now
        fact.used_count = (fact.used_count or 0) + 1
        s.add(fact)

    s.commit()
    s.refresh(edition)

    logger.info(
        "ASSEMBLE_DONE",
        extra=X(
            step="end",
            edition_id=edition.id,
            top_stories=len(top),
            mystery_link_id=edition.mystery_link_id,
            fun_fact_id=edition.fun_fact_id,
            sponsor_id=edition.sponsor_id,
            elapsed_ms=round((time.perf_counter() - t0) * 1000),
        ),
    )
    return {
        "success": True,
        "edition_id": edition.id,
        "edition_date": target,
        "hero_article_id": hero.id,
        "top_stories_count": len(top),
        "subject_line": edition.subject_line,
        "subject_line_variant_b": edition.subject_line_variant_b,
        "permalink_url": edition.permalink_url,
    }
