from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_digest_service
from ..services.digest import DigestService

router = APIRouter(prefix="/api/digest", tags=["digest"])


@router.get("/preview", response_class=HTMLResponse)
async def preview_digest(
    db: Session = Depends(get_db),
    service: DigestService = Depends(get_digest_service),
):
    """Render the digest that would be sent now, without sending it."""
    now = datetime.utcnow()
    episodes = service.get_recent_episodes(db, now)
    return HTMLResponse(service.render_html(episodes, service.local_time(now)))
