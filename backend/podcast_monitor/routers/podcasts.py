from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from datetime import datetime
import logging

from ..database import get_db
from ..dependencies import get_feed_parser, get_monitor
from .. import models, schemas
from ..services.feed_parser import FeedParser, FeedError
from ..services.monitor import FeedMonitor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/podcasts", tags=["podcasts"])


def _get_podcast_or_404(db: Session, podcast_id: int) -> models.Podcast:
    podcast = db.query(models.Podcast).filter(models.Podcast.id == podcast_id).first()
    if not podcast:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Podcast not found"
        )
    return podcast


@router.post("", response_model=schemas.Podcast, status_code=status.HTTP_201_CREATED)
async def add_podcast(
    request: schemas.PodcastCreate,
    db: Session = Depends(get_db),
    parser: FeedParser = Depends(get_feed_parser),
):
    """Subscribe to a podcast by RSS feed URL.

    Only episodes published after the subscription are processed.
    """
    existing = db.query(models.Podcast).filter(
        models.Podcast.rss_url == request.rss_url
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Podcast with this feed URL already exists"
        )

    try:
        parsed = parser.parse(request.rss_url)
    except FeedError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    podcast = models.Podcast(
        name=request.name or parsed.title,
        rss_url=request.rss_url,
        description=parsed.description,
        image_url=parsed.image_url,
        is_active=True,
        last_checked=datetime.utcnow()
    )
    db.add(podcast)
    db.commit()
    db.refresh(podcast)
    logger.info(f"Subscribed to {podcast.name} ({podcast.rss_url})")
    return podcast


@router.get("", response_model=List[schemas.PodcastSummary])
async def list_podcasts(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """List all podcasts."""
    podcasts = db.query(models.Podcast).order_by(models.Podcast.id).offset(skip).limit(limit).all()

    result = []
    for podcast in podcasts:
        episode_count = db.query(models.Episode).filter(
            models.Episode.podcast_id == podcast.id
        ).count()

        processed_count = db.query(models.Episode).filter(
            models.Episode.podcast_id == podcast.id,
            models.Episode.status == "completed"
        ).count()

        summary = schemas.PodcastSummary.model_validate(podcast)
        summary.episode_count = episode_count
        summary.processed_count = processed_count
        result.append(summary)

    return result


@router.get("/{podcast_id}", response_model=schemas.Podcast)
async def get_podcast(podcast_id: int, db: Session = Depends(get_db)):
    return _get_podcast_or_404(db, podcast_id)


@router.patch("/{podcast_id}", response_model=schemas.Podcast)
async def update_podcast(podcast_id: int, update: schemas.PodcastUpdate, db: Session = Depends(get_db)):
    """Rename a podcast or pause/resume monitoring."""
    podcast = _get_podcast_or_404(db, podcast_id)

    if update.name is not None:
        podcast.name = update.name
    if update.is_active is not None:
        podcast.is_active = update.is_active

    db.commit()
    db.refresh(podcast)
    return podcast


@router.delete("/{podcast_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_podcast(podcast_id: int, db: Session = Depends(get_db)):
    """Delete a podcast and all its episodes."""
    podcast = _get_podcast_or_404(db, podcast_id)
    db.delete(podcast)
    db.commit()
    return None


@router.post("/{podcast_id}/check", response_model=schemas.PodcastCheck)
async def check_podcast(
    podcast_id: int,
    db: Session = Depends(get_db),
    monitor: FeedMonitor = Depends(get_monitor),
):
    """Check one feed for new episodes and process them now."""
    _get_podcast_or_404(db, podcast_id)
    try:
        result = await monitor.process_podcast_feed(podcast_id)
    except FeedError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return schemas.PodcastCheck(
        podcast_id=podcast_id,
        new_episodes=result.new_episodes,
        processed=result.processed
    )
