# weekly_brief/content.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlmodel import Session, select

from .models import Article, Edition, FunFact, MysteryLink, Sponsor, TopStory


@dataclass
class EditionContent:
    """Everything the renderer needs for one edition, loaded once per send batch."""
    edition: Edition
    hero: Optional[Article] = None
    stories: List[Tuple[TopStory, Article]] = field(default_factory=list)
    mystery_link: Optional[MysteryLink] = None
    fun_fact: Optional[FunFact] = None
    sponsor: Optional[Sponsor] = None


def load_edition_content(s: Session, edition: Edition) -> EditionContent:
    rows = s.exec(
        select(TopStory, Article)
        .where(TopStory.edition_id == edition.id)
        .where(TopStory.article_id == Article.id)
        .order_by(TopStory.position)
    ).all()
    return EditionContent(
        edition=edition,
        hero=s.get(Article, edition.hero_article_id) if edition.hero_article_id else None,
        stories=[(story, article) for story, article in rows],
        mystery_link=s.get(MysteryLink, edition.mystery_link_id) if edition.mystery_link_id else None,
        fun_fact=s.get(FunFact, edition.fun_fact_id) if edition.fun_fact_id else None,
        sponsor=s.get(Sponsor, edition.sponsor_id) if edition.sponsor_id else None,
    )
