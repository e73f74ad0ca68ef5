# weekly_brief/generator.py
"""
AI content generator for an edition.

One chat-completion call per item, each with its own hand-written prompt:
  - editor_note:    one paragraph, 60-80 words
  - worth_watching: four {title, content} blurbs (trends/events/spotlight/policy)
  - subject_lines:  an A/B pair
  - summaries:      one sentence per top story

Each section is committed as soon as it is generated. A failed call raises
AIGenerationError and aborts the request; sections already committed stay.
"""
from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from openai import OpenAI, OpenAIError
from sqlmodel import Session, select

from .config import AI_API_KEY, AI_BASE_URL, AI_MODEL, AI_SUMMARY_MODEL, AI_TIMEOUT
from .errors import AIGenerationError, ConfigurationError, NotFoundError, PipelineError, ValidationError
from .logging_setup import get_logger
from .models import Article, Edition, TopStory, utcnow

logger = get_logger("weekly_brief.generator")

SECTIONS = ("editor_note", "worth_watching", "subject_lines", "summaries")

EDITOR_SYSTEM_PROMPT = (
    "You are an expert AI news editor writing for a business audience in Asia. "
    "Be concise, authoritative, and insightful. Use British English and no em dashes."
)

# section key -> (default title, what the blurb should cover)
WORTH_WATCHING_SECTIONS: Dict[str, Tuple[str, str]] = {
    "trends": ("Trend to Watch", "an emerging trend or pattern across the region"),
    "events": ("On the Horizon", "an upcoming event, launch or deadline readers should note"),
    "spotlight": ("Spotlight", "a company, researcher or project gaining momentum"),
    "policy": ("Policy Watch", "a regulatory or policy development and its likely timeline"),
}

_client: Optional[OpenAI] = None


def _get_client() -> OpenAI:
    global _client
    if _client is not None:
        return _client
    if not AI_API_KEY:
        raise ConfigurationError("AI_API_KEY is required for AI content generation")
    _client = OpenAI(api_key=AI_API_KEY, base_url=AI_BASE_URL, timeout=AI_TIMEOUT)
    return _client


def _chat(
    client: OpenAI,
    prompt: str,
    *,
    system: Optional[str] = EDITOR_SYSTEM_PROMPT,
    model: str = AI_MODEL,
    max_tokens: int = 300,
    temperature: float = 0.7,
    label: str = "",
) -> str:
    messages = [{"role": "system", "content": system}] if system else []
    messages.append({"role": "user", "content": prompt})
    try:
        resp = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
    except OpenAIError as e:
        logger.exception("AI_CALL_FAILED", extra={"label": label, "error": type(e).__name__})
        raise AIGenerationError(f"Failed to generate {label or 'content'}: {e}") from e
    return (resp.choices[0].message.content or "").strip()


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Best-effort JSON object parse; tolerates ```json fences. None when it isn't a JSON object."""
    if not text:
        return None
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _strip_quotes(text: str) -> str:
    return text.strip().strip('"').strip("“”").strip()


def parse_worth_watching(text: str, default_title: str) -> Dict[str, str]:
    data = parse_json_object(text)
    if data is None:
        return {"title": default_title, "content": text.strip()}
    title = str(data.get("title") or "").strip() or default_title
    content = str(data.get("content") or "").strip() or text.strip()
    return {"title": title, "content": content}


def parse_subject_lines(text: str, current_a: str, current_b: Optional[str]) -> Tuple[str, Optional[str]]:
    data = parse_json_object(text)
    if data is None:
        first = next((ln for ln in text.splitlines() if ln.strip()), "")
        return (_strip_quotes(first) or current_a), current_b
    a = _strip_quotes(str(data.get("a") or "")) or current_a
    b = _strip_quotes(str(data.get("b") or "")) or current_b
    return a, b


# ---------- Prompts ----------

def _articles_context(rows: Iterable[Tuple[int, Article]]) -> str:
    return "\n".join(
        f'{pos}. "{a.title}" ({a.category or "General"}): {a.excerpt or ""}'.rstrip()
        for pos, a in rows
    )


def editor_note_prompt(context: str) -> str:
    return f"""Based on this week's top stories:
{context}

Write a concise Editor's Note (60-80 words) that:
1. Sets context for what's happening in AI across Asia this week
2. References 1-2 key themes (regulation, platforms, adoption, regional signals)
3. Uses an authoritative but accessible editorial voice
4. Does NOT use bullet points or lists
5. Does NOT start with "This week" - be more creative

Return ONLY the paragraph text, no headers or quotes."""


def worth_watching_prompt(context: str, focus: str, default_title: str) -> str:
    return f"""Based on this week's top stories:
{context}

Write one short "Worth Watching" item (40-60 words) about {focus}.
Avoid predictions framed as certainty; prefer "signals suggest" or "worth monitoring".
No bullet points.

Return strict JSON with keys:
  - title: a short headline (max 8 words), e.g. "{default_title}"
  - content: the paragraph"""


def subject_lines_prompt(context: str) -> str:
    return f"""Based on this week's top stories:
{context}

Write two alternative email subject lines for the weekly newsletter, for an A/B test.
Each under 60 characters, editorial tone, no emojis, no clickbait.

Return strict JSON with keys "a" and "b"."""


def summary_prompt(article: Article) -> str:
    return f"""Write a single compelling sentence (15-25 words) that summarises why this article matters:
Title: "{article.title}"
Excerpt: {article.excerpt or 'No excerpt available'}

The sentence should:
- Focus on the impact or significance
- Be written for busy executives
- NOT start with "This article" or "The article"
- NOT use generic phrases like "explores", "discusses", "looks at"

Return ONLY the sentence, no quotes."""


# ---------- Orchestration ----------

def _load_stories(s: Session, edition: Edition) -> List[Tuple[TopStory, Article]]:
    rows = s.exec(
        select(TopStory, Article)
        .where(TopStory.edition_id == edition.id)
        .where(TopStory.article_id == Article.id)
        .order_by(TopStory.position)
    ).all()
    return [(story, article) for story, article in rows]


def generate_content(s: Session, edition_id: int, sections: Optional[List[str]] = None) -> Dict[str, Any]:
    requested = list(sections) if sections else list(SECTIONS)
    unknown = [sec for sec in requested if sec not in SECTIONS]
    if unknown:
        raise ValidationError(f"Unknown sections: {', '.join(unknown)}")

    edition = s.get(Edition, edition_id)
    if edition is None:
        raise NotFoundError("Edition not found")
    # what went out is what the archive shows
    if edition.status != "draft":
        raise ValidationError(f"Edition has already been {edition.status}; content is locked", edition_id=edition.id)

    stories = _load_stories(s, edition)
    hero = s.get(Article, edition.hero_article_id) if edition.hero_article_id else None
    if not stories and hero is None:
        raise PipelineError("No top stories found for this edition")

    context_rows: List[Tuple[int, Article]] = []
    if hero is not None:
        context_rows.append((1, hero))
    context_rows += [(len(context_rows) + i, a) for i, (_, a) in enumerate(stories, start=1)]
    context = _articles_context(context_rows)

    client = _get_client()
    t0 = time.perf_counter()
    result: Dict[str, Any] = {"success": True, "edition_id": edition.id, "sections": requested}
    logger.info("GENERATE_START", extra={"edition_id": edition.id, "sections": requested, "stories": len(stories)})

    if "editor_note" in requested:
        note = _strip_quotes(_chat(client, editor_note_prompt(context), label="editor note"))
        edition.editor_note = note
        s.add(edition)
        s.commit()
        result["editor_note"] = note
        logger.info("EDITOR_NOTE_SAVED", extra={"edition_id": edition.id, "words": len(note.split())})

    if "worth_watching" in requested:
        watching: Dict[str, Dict[str, str]] = {}
        for key, (default_title, focus) in WORTH_WATCHING_SECTIONS.items():
            raw = _chat(
                client,
                worth_watching_prompt(context, focus, default_title),
                max_tokens=250,
                label=f"worth watching ({key})",
            )
            watching[key] = parse_worth_watching(raw, default_title)
        # JSON column: assign a fresh dict so the change is tracked
        edition.worth_watching = dict(watching)
        s.add(edition)
        s.commit()
        result["worth_watching"] = watching
        logger.info("WORTH_WATCHING_SAVED", extra={"edition_id": edition.id, "keys": list(watching)})

    if "subject_lines" in requested:
        raw = _chat(client, subject_lines_prompt(context), max_tokens=120, temperature=0.8, label="subject lines")
        a, b = parse_subject_lines(raw, edition.subject_line, edition.subject_line_variant_b)
        edition.subject_line, edition.subject_line_variant_b = a, b
        s.add(edition)
        s.commit()
        result["subject_lines"] = {"a": a, "b": b}
        logger.info("SUBJECT_LINES_SAVED", extra={"edition_id": edition.id})

    if "summaries" in requested:
        summaries = []
        for story, article in stories:
            text = _strip_quotes(_chat(
                client,
                summary_prompt(article),
                system=None,
                model=AI_SUMMARY_MODEL,
                max_tokens=100,
                temperature=0.6,
                label=f"summary (position {story.position})",
            ))
            story.ai_summary = text or article.excerpt
            s.add(story)
            s.commit()
            summaries.append({
                "position": story.position,
                "title": article.title,
                "summary": story.ai_summary,
                "category": article.category or "General",
            })
        result["summaries"] = summaries
        logger.info("SUMMARIES_SAVED", extra={"edition_id": edition.id, "count": len(summaries)})

    edition.ai_generated_at = utcnow()
    s.add(edition)
    s.commit()

    if edition.editor_note:
        result.setdefault("word_counts", {})["editor_note"] = len(edition.editor_note.split())
    logger.info(
        "GENERATE_DONE",
        extra={"edition_id": edition.id, "elapsed_ms": round((time.perf_counter() - t0) * 1000)},
    )
    return result
