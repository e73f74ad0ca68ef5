# weekly_brief/routers/readers.py
"""Public, reader-facing endpoints: tracking, unsubscribe, forward, archive."""
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from sqlmodel import select

from ..content import load_edition_content
from ..errors import NotFoundError
from ..logging_setup import get_logger
from ..models import Edition
from ..render_edition import render_edition_html
from ..schema import ForwardIn, UnsubscribeIn
from ..store import get_session
from ..subscriptions import forward_edition, unsubscribe
from ..tracker import PIXEL_GIF, TrackingLinks, track

logger = get_logger("weekly_brief.routes.readers")

router = APIRouter(prefix="/newsletter", tags=["Readers"])

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@router.get("/track", include_in_schema=False)
def track_request(request: Request):
    with get_session() as s:
        result = track(
            s,
            dict(request.query_params),
            user_agent=request.headers.get("user-agent", ""),
            forwarded_for=request.headers.get("x-forwarded-for", ""),
        )
    if result.kind == "pixel":
        return Response(content=PIXEL_GIF, media_type="image/gif", headers=NO_CACHE)
    return RedirectResponse(url=result.location, status_code=302)


@router.post("/unsubscribe")
def post_unsubscribe(body: UnsubscribeIn):
    with get_session() as s:
        return unsubscribe(s, body.email or "", reason=body.reason, feedback=body.feedback)


@router.post("/forward")
def post_forward(body: ForwardIn):
    with get_session() as s:
        return forward_edition(s, body.edition_id or 0, body.sender_name or "", body.recipient_email or "")


@router.get("/archive/{edition_date}", response_class=HTMLResponse)
def get_archive(edition_date: str):
    with get_session() as s:
        edition = s.exec(select(Edition).where(Edition.edition_date == edition_date)).first()
        if edition is None or edition.status != "sent":
            raise NotFoundError("Edition not found")
        html = render_edition_html(load_edition_content(s, edition), TrackingLinks.direct(edition.id))
    return HTMLResponse(html)
