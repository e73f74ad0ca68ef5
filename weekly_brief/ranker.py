from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from .models import Article

EXCLUDED_ARTICLE_TYPES = ("three_before_nine", "editors_note")
LOOKBACK_DAYS = 7
MAX_TOP_STORIES = 5
MAX_PER_CATEGORY = 3

UNCATEGORISED = "General"


def popularity_key(article: Article):
    return (article.view_count or 0, article.like_count or 0)


def is_candidate(article: Article, now: datetime, lookback_days: int = LOOKBACK_DAYS) -> bool:
    if article.status != "published" or article.article_type in EXCLUDED_ARTICLE_TYPES:
        return False
    if article.published_at is None:
        return False
    return article.published_at >= now - timedelta(days=lookback_days)


def rank_candidates(articles: Iterable[Article], now: datetime, lookback_days: int = LOOKBACK_DAYS) -> List[Article]:
    """Published, non-excluded articles from the trailing window, most viewed first (likes break ties)."""
    pool = [a for a in articles if is_candidate(a, now, lookback_days)]
    # sorted() is stable, so equal popularity keeps store order
    return sorted(pool, key=popularity_key, reverse=True)


def pick_hero(ranked: Sequence[Article]) -> Optional[Article]:
    return ranked[0] if ranked else None


def diversify_by_category(
    ranked: Sequence[Article],
    hero: Optional[Article] = None,
    limit: int = MAX_TOP_STORIES,
    per_category: int = MAX_PER_CATEGORY,
) -> List[Article]:
    """
    Greedy walk down the ranking: take an article unless it is the hero or its
    category already holds `per_category` picks. The hero counts toward its
    own category.
    """
    counts: Counter = Counter()
    if hero is not None:
        counts[hero.category or UNCATEGORISED] += 1

    picked: List[Article] = []
    for a in ranked:
        if len(picked) >= limit:
            break
        if hero is not None and a.id == hero.id:
            continue
        cat = a.category or UNCATEGORISED
        if counts[cat] >= per_category:
            continue
        counts[cat] += 1
        picked.append(a)
    return picked
