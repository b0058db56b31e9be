from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/api/topics", tags=["topics"])


def _get_topic_or_404(db: Session, topic_id: int) -> models.InterestTopic:
    topic = db.query(models.InterestTopic).filter(models.InterestTopic.id == topic_id).first()
    if not topic:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Topic not found"
        )
    return topic


@router.get("", response_model=List[schemas.InterestTopic])
async def list_topics(active_only: bool = False, db: Session = Depends(get_db)):
    query = db.query(models.InterestTopic)
    if active_only:
        query = query.filter(models.InterestTopic.is_active.is_(True))
    return query.order_by(models.InterestTopic.topic).all()


@router.post("", response_model=schemas.InterestTopic, status_code=status.HTTP_201_CREATED)
async def add_topic(request: schemas.InterestTopicCreate, db: Session = Depends(get_db)):
    """Add an interest topic to flag in new episodes."""
    name = request.topic.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Topic must not be empty"
        )

    existing = db.query(models.InterestTopic).filter(
        models.InterestTopic.topic == name
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Topic already exists"
        )

    topic = models.InterestTopic(topic=name, is_active=True)
    db.add(topic)
    db.commit()
    db.refresh(topic)
    return topic


@router.patch("/{topic_id}", response_model=schemas.InterestTopic)
async def update_topic(topic_id: int, update: schemas.InterestTopicUpdate, db: Session = Depends(get_db)):
    topic = _get_topic_or_404(db, topic_id)
    if update.is_active is not None:
        topic.is_active = update.is_active
    db.commit()
    db.refresh(topic)
    return topic


@router.delete("/{topic_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_topic(topic_id: int, db: Session = Depends(get_db)):
    """Delete a topic and every flag raised for it."""
    topic = _get_topic_or_404(db, topic_id)
    db.delete(topic)
    db.commit()
    return None
