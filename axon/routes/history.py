from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import UserScopedStore, commit
from ..database import get_db
from ..dependencies import get_current_user
from ..errors import NotFoundError

router = APIRouter(prefix="/api/history", tags=["history"])


def _store(db: Session, user: models.User) -> UserScopedStore:
    return UserScopedStore(db, models.HistoryEntry, user.id)


@router.post("", status_code=201)
def record_history(
    payload: schemas.HistoryIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    values = payload.model_dump()
    values["name"] = values["name"] or f"{payload.method} {payload.url}"
    entry = _store(db, current_user).put(models.HistoryEntry(**values))
    return {"success": True, "item": schemas.HistoryOut.model_validate(entry)}


@router.get("")
def list_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    method: Optional[schemas.HttpMethod] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    criteria = []
    if method:
        criteria.append(models.HistoryEntry.method == method)
    if search:
        pattern = f"%{search}%"
        criteria.append(
            or_(models.HistoryEntry.name.like(pattern), models.HistoryEntry.url.like(pattern))
        )

    items = _store(db, current_user).query(
        *criteria,
        order_by=[models.HistoryEntry.created_at.desc(), models.HistoryEntry.id.desc()],
        limit=limit,
        offset=(page - 1) * limit,
    )
    total = db.execute(
        select(func.count(models.HistoryEntry.id)).where(
            models.HistoryEntry.user_id == current_user.id, *criteria
        )
    ).scalar_one()
    return {
        "success": True,
        "history": [schemas.HistoryOut.model_validate(item) for item in items],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit)},
    }


@router.get("/{entry_id}")
def get_history_item(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    entry = _store(db, current_user).require(entry_id, "Request history")
    return {"success": True, "item": schemas.HistoryOut.model_validate(entry)}


@router.delete("/{entry_id}")
def delete_history_item(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not _store(db, current_user).delete(entry_id):
        raise NotFoundError("Request history not found")
    return {"success": True}


@router.delete("")
def clear_history(
    db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)
):
    result = db.execute(
        delete(models.HistoryEntry).where(models.HistoryEntry.user_id == current_user.id)
    )
    commit(db)
    return {"success": True, "deleted": result.rowcount}
