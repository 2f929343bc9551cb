import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import UserScopedStore, commit
from ..database import get_db
from ..dependencies import get_current_user
from ..errors import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/requests", tags=["requests"])


def _fields(payload: schemas.RequestIn) -> dict:
    return {
        "name": payload.name or "Untitled Request",
        "url": payload.url,
        "method": payload.method,
        "params": payload.params,
        "headers": payload.headers,
        "body": payload.body,
        "auth": payload.auth.model_dump() if payload.auth else None,
    }


@router.post("/save")
def save_request(
    payload: schemas.RequestIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    store = UserScopedStore(db, models.SavedRequest, current_user.id)
    saved = store.put(models.SavedRequest(**_fields(payload)))
    logger.info("Request saved: %s - user %s", saved.name, current_user.username)
    return {"success": True, "request": schemas.SavedRequestOut.model_validate(saved)}


@router.get("/saved")
def list_saved(
    db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)
):
    store = UserScopedStore(db, models.SavedRequest, current_user.id)
    saved = store.query(order_by=models.SavedRequest.created_at.desc())
    return {
        "success": True,
        "requests": [schemas.SavedRequestOut.model_validate(item) for item in saved],
    }


@router.delete("/saved/{request_id}")
def delete_saved(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not UserScopedStore(db, models.SavedRequest, current_user.id).delete(request_id):
        raise NotFoundError("Saved request not found")
    return {"success": True}


@router.post("/favorite")
def add_favorite(
    payload: schemas.FavoriteIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    store = UserScopedStore(db, models.Favorite, current_user.id)
    favorite = store.put(models.Favorite(folder=payload.folder or "Default", **_fields(payload)))
    logger.info("Request favorited: %s - user %s", favorite.name, current_user.username)
    return {"success": True, "favorite": schemas.FavoriteOut.model_validate(favorite)}


@router.get("/favorites")
def list_favorites(
    folder: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    store = UserScopedStore(db, models.Favorite, current_user.id)
    criteria = [models.Favorite.folder == folder] if folder else []
    favorites = store.query(*criteria, order_by=models.Favorite.created_at.desc())
    return {
        "success": True,
        "favorites": [schemas.FavoriteOut.model_validate(item) for item in favorites],
    }


@router.get("/favorites/folders")
def list_favorite_folders(
    db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)
):
    stmt = (
        select(models.Favorite.folder, func.count(models.Favorite.id).label("count"))
        .where(models.Favorite.user_id == current_user.id)
        .group_by(models.Favorite.folder)
        .order_by(models.Favorite.folder)
    )
    rows = db.execute(stmt).all()
    return {"success": True, "folders": [{"folder": row.folder, "count": row.count} for row in rows]}


@router.put("/favorites/{favorite_id}")
def update_favorite(
    favorite_id: int,
    payload: schemas.FavoriteUpdateIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    store = UserScopedStore(db, models.Favorite, current_user.id)
    favorite = store.require(favorite_id, "Favorite")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(favorite, key, value)
    commit(db)
    db.refresh(favorite)
    return {"success": True, "favorite": schemas.FavoriteOut.model_validate(favorite)}


@router.delete("/favorites/{favorite_id}")
def delete_favorite(
    favorite_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not UserScopedStore(db, models.Favorite, current_user.id).delete(favorite_id):
        raise NotFoundError("Favorite not found")
    return {"success": True}
