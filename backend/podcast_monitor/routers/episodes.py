from fastapi import APIRouter, Depends, HTTPException, BackgroundTasks, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..dependencies import get_monitor
from .. import models, schemas
from ..services.monitor import FeedMonitor

router = APIRouter(prefix="/api/episodes", tags=["episodes"])


def _get_episode_or_404(db: Session, episode_id: int) -> models.Episode:
    episode = db.query(models.Episode).filter(models.Episode.id == episode_id).first()
    if not episode:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Episode not found"
        )
    return episode


@router.get("", response_model=List[schemas.EpisodeCompact])
async def list_episodes(
    podcast_id: Optional[int] = None,
    status_filter: Optional[str] = None,
    priority_only: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """List episodes, newest first."""
    query = db.query(models.Episode)

    if podcast_id is not None:
        query = query.filter(models.Episode.podcast_id == podcast_id)
    if status_filter:
        query = query.filter(models.Episode.status == status_filter)
    if priority_only:
        query = query.filter(models.Episode.is_priority.is_(True))

    return query.order_by(models.Episode.published_at.desc()).offset(skip).limit(limit).all()


@router.get("/{episode_id}", response_model=schemas.Episode)
async def get_episode(episode_id: int, db: Session = Depends(get_db)):
    """Get an episode with its summary and topic flags."""
    return _get_episode_or_404(db, episode_id)


@router.post("/{episode_id}/process", response_model=schemas.ProcessingStatus)
async def process_episode(
    episode_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    monitor: FeedMonitor = Depends(get_monitor),
):
    """(Re)run the AI pipeline for an episode in the background."""
    episode = _get_episode_or_404(db, episode_id)

    if episode.status == "processing":
        return schemas.ProcessingStatus(
            episode_id=episode_id,
            status="processing",
            message="Processing already in progress"
        )

    episode.status = "processing"
    episode.processing_step = "queued"
    db.commit()
    background_tasks.add_task(monitor.process_episode_ai, episode_id)

    return schemas.ProcessingStatus(
        episode_id=episode_id,
        status="processing",
        message="Processing started"
    )


@router.post("/reset-stuck")
async def reset_stuck_episodes(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    monitor: FeedMonitor = Depends(get_monitor),
):
    """Reset stuck processing and failed episodes and queue them for another run."""
    stuck = db.query(models.Episode).filter(
        models.Episode.status.in_(["processing", "failed"])
    ).all()
    for ep in stuck:
        ep.status = "pending"
        ep.processing_step = None
    db.commit()
    for ep in stuck:
        background_tasks.add_task(monitor.process_episode_ai, ep.id)
    return {"reset": len(stuck)}
