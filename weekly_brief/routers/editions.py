# weekly_brief/routers/editions.py
from fastapi import APIRouter, Depends

from ..assembler import assemble_edition
from ..auth import require_admin
from ..content import load_edition_content
from ..errors import NotFoundError
from ..generator import generate_content
from ..logging_setup import get_logger
from ..models import AdminUser, Edition
from ..render_edition import render_edition_html
from ..schema import AssembleIn, EditionIn, GenerateIn, SendIn
from ..sender import send_edition
from ..store import get_session
from ..tracker import TrackingLinks
from ..workflow import run_auto_send

logger = get_logger("weekly_brief.routes.editions")

router = APIRouter(prefix="/newsletter", tags=["Editions"])


@router.post("/editions", summary="Assemble a draft edition for a date")
def create_edition(body: AssembleIn, user: AdminUser = Depends(require_admin)):
    logger.info(f"Assemble requested: edition_date={body.edition_date or 'today'} by user={user.id}")
    with get_session() as s:
        return assemble_edition(s, edition_date=body.edition_date, created_by=user.id)


@router.post("/generate-content", summary="Generate AI sections for an edition")
def create_content(body: GenerateIn, user: AdminUser = Depends(require_admin)):
    logger.info(f"Generate requested: edition={body.edition_id} sections={body.sections or 'all'}")
    with get_session() as s:
        return generate_content(s, body.edition_id, body.sections)


@router.post("/preview", summary="Render an edition as it will be emailed")
def preview_edition(body: EditionIn, _: AdminUser = Depends(require_admin)):
    with get_session() as s:
        edition = s.get(Edition, body.edition_id)
        if edition is None:
            raise NotFoundError("Edition not found")
        html = render_edition_html(load_edition_content(s, edition), TrackingLinks.direct(edition.id))
    return {"success": True, "html": html}


@router.post("/send", summary="Send an edition (or a single test email)")
def send(body: SendIn, _: AdminUser = Depends(require_admin)):
    mode = "test" if body.test_email else "production"
    logger.info(f"Send requested: edition={body.edition_id} mode={mode}")
    with get_session() as s:
        return send_edition(s, body.edition_id, test_email=body.test_email)


@router.post("/auto-send", summary="Send the latest ready draft now")
def auto_send(_: AdminUser = Depends(require_admin)):
    return run_auto_send()
