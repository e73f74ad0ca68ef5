# tests/test_ranker.py
from datetime import datetime, timedelta, timezone

from weekly_brief.models import Article
from weekly_brief.ranker import diversify_by_category, pick_hero, rank_candidates

NOW = datetime(2026, 10, 15, 9, 0, tzinfo=timezone.utc)


def art(id, category="Policy", views=0, likes=0, days_ago=1, **kw):
    return Article(id=id, title=f"A{id}", slug=f"a{id}", category=category, view_count=views,
                   like_count=likes, published_at=NOW - timedelta(days=days_ago), **kw)


def test_rank_filters_window_status_and_type():
    pool = [
        art(1, views=5),
        art(2, views=50, days_ago=8),
        art(3, views=40, status="draft"),
        art(4, views=30, article_type="three_before_nine"),
        art(5, views=20, article_type="editors_note"),
        art(6, views=10),
    ]
    assert [a.id for a in rank_candidates(pool, NOW)] == [6, 1]


def test_likes_break_view_ties():
    ranked = rank_candidates([art(1, views=10, likes=1), art(2, views=10, likes=9)], NOW)
    assert pick_hero(ranked).id == 2


def test_pick_hero_empty():
    assert pick_hero([]) is None


def test_hero_excluded_and_category_cap_counts_hero():
    ranked = [art(i, category="Policy", views=100 - i) for i in range(1, 6)]
    ranked += [art(10, category="Chips", views=10), art(11, category=None, views=5)]
    hero = ranked[0]
    top = diversify_by_category(ranked, hero=hero)
    ids = [a.id for a in top]
    assert hero.id not in ids
    # hero already holds one Policy slot
    assert sum(1 for a in top if a.category == "Policy") == 2
    assert ids == [2, 3, 10, 11]


def test_top_stories_limited_to_five():
    cats = ["A", "B", "C", "D", "E", "F", "G"]
    ranked = [art(i + 1, category=c, views=100 - i) for i, c in enumerate(cats)]
    top = diversify_by_category(ranked, hero=ranked[0])
    assert len(top) == 5
    assert [a.id for a in top] == [2, 3, 4, 5, 6]
