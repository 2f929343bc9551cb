from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..database import get_db
from ..dependencies import get_current_user

router = APIRouter(prefix="/api", tags=["collections"])


def _request_values(payload) -> dict:
    values = payload.model_dump(exclude_unset=True)
    if "auth" in values:
        values["auth"] = payload.auth.model_dump() if payload.auth else None
    return values


def _collection(collection: models.Collection) -> schemas.CollectionOut:
    return schemas.CollectionOut.model_validate(collection)


def _request(request: models.CollectionRequest) -> schemas.CollectionRequestOut:
    return schemas.CollectionRequestOut.model_validate(request)


@router.get("/collections", response_model=schemas.CollectionTreeOut)
def list_collections(
    db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)
):
    collections, requests = crud.collection_tree(db, current_user.id)
    return {
        "success": True,
        "collections": [_collection(item) for item in collections],
        "requests": [_request(item) for item in requests],
    }


@router.post("/collections")
def create_collection(
    payload: schemas.CollectionIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collection = crud.create_collection(
        db, current_user.id, payload.name, payload.description, payload.parent_id
    )
    return {"success": True, "collection": _collection(collection)}


@router.put("/collections/{collection_id}")
def update_collection(
    collection_id: str,
    payload: schemas.CollectionUpdateIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collection = crud.update_collection(
        db, current_user.id, collection_id, payload.model_dump(exclude_unset=True)
    )
    return {"success": True, "collection": _collection(collection)}


@router.delete("/collections/{collection_id}")
def delete_collection(
    collection_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    removed = crud.delete_collection(db, current_user.id, collection_id)
    return {"success": True, "deleted": sorted(removed)}


@router.post("/collections/{collection_id}/move")
def move_collection(
    collection_id: str,
    payload: schemas.CollectionMoveIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collection = crud.move_collection(
        db, current_user.id, collection_id, payload.parent_id, payload.order
    )
    return {"success": True, "collection": _collection(collection)}


@router.post("/collections/{collection_id}/requests")
def create_request(
    collection_id: str,
    payload: schemas.CollectionRequestIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    values = payload.model_dump()
    values["auth"] = payload.auth.model_dump() if payload.auth else None
    request = crud.create_request(db, current_user.id, collection_id, values)
    return {"success": True, "request": _request(request)}


@router.put("/requests/{request_id}")
def update_request(
    request_id: str,
    payload: schemas.CollectionRequestUpdateIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    request = crud.update_request(db, current_user.id, request_id, _request_values(payload))
    return {"success": True, "request": _request(request)}


@router.delete("/requests/{request_id}")
def delete_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    crud.delete_request(db, current_user.id, request_id)
    return {"success": True}


@router.post("/requests/{request_id}/move")
def move_request(
    request_id: str,
    payload: schemas.CollectionRequestMoveIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    request = crud.move_request(db, current_user.id, request_id, payload.collection_id, payload.order)
    return {"success": True, "request": _request(request)}


@router.post("/requests/{request_id}/duplicate")
def duplicate_request(
    request_id: str,
    payload: schemas.DuplicateIn = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    target = payload.collection_id if payload else None
    request = crud.duplicate_request(db, current_user.id, request_id, target)
    return {"success": True, "request": _request(request)}
