from typing import Optional, List
from sqlmodel import SQLModel, Field, Column, JSON
from sqlalchemy.types import DateTime, TypeDecorator
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timestamps are aware UTC in Python. SQLite keeps no offset, so they are
    stored as naive UTC and get tzinfo back on load.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Article(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    slug: str = Field(index=True)
    excerpt: Optional[str] = ""
    content: Optional[str] = ""
    featured_image_url: Optional[str] = None
    category: Optional[str] = None  # category name, e.g. "Policy"
    article_type: str = "article"  # article | three_before_nine | editors_note | ...
    status: str = "published"  # draft | published
    published_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    view_count: int = 0
    like_count: int = 0


class Edition(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    edition_date: str = Field(index=True, unique=True)  # YYYY-MM-DD
    status: str = "draft"  # draft | sending | sent
    subject_line: str
    subject_line_variant_b: Optional[str] = None
    permalink_url: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    hero_article_id: Optional[int] = Field(default=None, foreign_key="article.id")
    mystery_link_id: Optional[int] = Field(default=None, foreign_key="mysterylink.id")
    fun_fact_id: Optional[int] = Field(default=None, foreign_key="funfact.id")
    sponsor_id: Optional[int] = Field(default=None, foreign_key="sponsor.id")

    # AI-generated prose
    editor_note: Optional[str] = None
    worth_watching: dict = Field(default_factory=dict, sa_column=Column(JSON))
    ai_generated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    # send totals
    sent_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    total_sent: int = 0
    total_opened: int = 0
    total_clicked: int = 0
    variant_a_opens: int = 0
    variant_b_opens: int = 0


class TopStory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    edition_id: int = Field(foreign_key="edition.id", index=True)
    article_id: int = Field(foreign_key="article.id")
    original_article_id: Optional[int] = None
    position: int  # 1..5
    ai_summary: Optional[str] = None
    manual_override: bool = False


class Subscriber(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    first_name: Optional[str] = None
    confirmed: bool = False
    subscribed_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    unsubscribed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    total_opens: int = 0
    total_clicks: int = 0


class Send(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    edition_id: int = Field(foreign_key="edition.id", index=True)
    subscriber_id: int = Field(foreign_key="subscriber.id", index=True)
    variant: str  # A | B | winner
    status: str = "pending"  # pending | sent | failed
    error: Optional[str] = None
    sent_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    opened_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    clicked_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    unsubscribed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class MysteryLink(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    url: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool = True
    expires_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    used_in_editions: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class FunFact(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    fact_text: str
    source: Optional[str] = None
    is_active: bool = True
    last_used_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    used_count: int = 0


class Sponsor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    website_url: str
    banner_image_url: Optional[str] = None
    cta_text: Optional[str] = None
    is_active: bool = True
    priority: int = 0


class LinkClick(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    send_id: Optional[int] = None
    edition_id: Optional[int] = None
    subscriber_id: Optional[int] = None
    article_id: Optional[int] = None
    link_url: str
    link_type: str = "article"
    user_agent: Optional[str] = None
    ip_hash: Optional[str] = None
    session_id: str
    clicked_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class Unsubscribe(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str
    reason: Optional[str] = None
    feedback: Optional[str] = None
    source: str = "website"
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class AutomationLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    job_name: str
    status: str  # completed | skipped | failed
    started_at: datetime = Field(sa_type=UTCDateTime)
    completed_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    details: dict = Field(default_factory=dict, sa_column=Column(JSON))


class AdminUser(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    role: str = "admin"  # admin | editor
    token_hash: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
