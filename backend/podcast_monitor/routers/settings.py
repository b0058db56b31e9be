from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=schemas.UserSettings)
async def get_user_settings(db: Session = Depends(get_db)):
    user_settings = db.query(models.UserSettings).order_by(models.UserSettings.id).first()
    return schemas.UserSettings(email=user_settings.email if user_settings else None)


@router.put("", response_model=schemas.UserSettings)
async def update_user_settings(update: schemas.UserSettings, db: Session = Depends(get_db)):
    """Set the address the daily digest is sent to."""
    user_settings = db.query(models.UserSettings).order_by(models.UserSettings.id).first()
    if user_settings is None:
        user_settings = models.UserSettings()
        db.add(user_settings)
    user_settings.email = update.email or None
    db.commit()
    return schemas.UserSettings(email=user_settings.email)
