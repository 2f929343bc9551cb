from typing import Dict, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import CycleError, NotFoundError, StorageError


def commit(db: Session) -> None:
    """Commit the session, wrapping low-level failures.

    Raises:
        StorageError: if the database commit fails; the session is rolled back.
    """
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("Database commit failed") from exc


class UserScopedStore:
    """Storage capability for one model, restricted to one user's rows.

    Every read filters on ``user_id`` and every write stamps it, so no route
    can reach another user's saved requests, favorites, environments,
    history or collections.
    """

    def __init__(self, db: Session, model, user_id: int):
        self.db = db
        self.model = model
        self.user_id = user_id

    def get(self, obj_id) -> Optional[object]:
        stmt = select(self.model).where(
            self.model.id == obj_id, self.model.user_id == self.user_id
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def require(self, obj_id, label: str = None):
        obj = self.get(obj_id)
        if obj is None:
            raise NotFoundError(f"{label or self.model.__name__} not found")
        return obj

    def put(self, obj):
        obj.user_id = self.user_id
        self.db.add(obj)
        commit(self.db)
        self.db.refresh(obj)
        return obj

    def delete(self, obj_id) -> bool:
        obj = self.get(obj_id)
        if obj is None:
            return False
        self.db.delete(obj)
        commit(self.db)
        return True

    def query(self, *criteria, order_by=None, limit: int = None, offset: int = None) -> List:
        stmt = select(self.model).where(self.model.user_id == self.user_id, *criteria)
        if order_by is not None:
            stmt = stmt.order_by(*order_by) if isinstance(order_by, (list, tuple)) else stmt.order_by(order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())


# Environment helpers


def activate_environment(store: UserScopedStore, env_id: int) -> models.Environment:
    """Mark one environment active and every other one of the user inactive."""
    target = store.require(env_id, "Environment")
    for env in store.query():
        env.is_active = env.id == target.id
    commit(store.db)
    store.db.refresh(target)
    return target


# Collection tree


def _siblings(store: UserScopedStore, parent_id: Optional[str]) -> List[models.Collection]:
    return store.query(
        models.Collection.parent_id.is_(None) if parent_id is None
        else models.Collection.parent_id == parent_id,
        order_by=models.Collection.order_index,
    )


def _renumber(items: List, without=None, insert=None, position: Optional[int] = None) -> None:
    """Rewrite ``order_index`` as 0..n-1, dropping ``without`` and placing ``insert``."""
    items = [item for item in items if item is not without and item is not insert]
    if insert is not None:
        position = len(items) if position is None else max(0, min(position, len(items)))
        items.insert(position, insert)
    for index, item in enumerate(items):
        item.order_index = index


def _requests_of(store: UserScopedStore, collection_id: str) -> List[models.CollectionRequest]:
    return store.query(
        models.CollectionRequest.collection_id == collection_id,
        order_by=models.CollectionRequest.order_index,
    )


def collection_tree(db: Session, user_id: int):
    collections = UserScopedStore(db, models.Collection, user_id).query(
        order_by=[models.Collection.parent_id, models.Collection.order_index]
    )
    requests = UserScopedStore(db, models.CollectionRequest, user_id).query(
        order_by=[models.CollectionRequest.collection_id, models.CollectionRequest.order_index]
    )
    return collections, requests


def create_collection(
    db: Session, user_id: int, name: str, description: str = None, parent_id: str = None
) -> models.Collection:
    store = UserScopedStore(db, models.Collection, user_id)
    if parent_id is not None:
        store.require(parent_id, "Parent collection")
    collection = models.Collection(
        name=name,
        description=description,
        parent_id=parent_id,
        order_index=len(_siblings(store, parent_id)),
    )
    return store.put(collection)


def update_collection(db: Session, user_id: int, collection_id: str, changes: Dict) -> models.Collection:
    store = UserScopedStore(db, models.Collection, user_id)
    collection = store.require(collection_id, "Collection")
    for key in ("name", "description"):
        if key in changes:
            setattr(collection, key, changes[key])
    return store.put(collection)


def descendant_ids(store: UserScopedStore, collection_id: str) -> Set[str]:
    children_of: Dict[Optional[str], List[str]] = {}
    for collection in store.query():
        children_of.setdefault(collection.parent_id, []).append(collection.id)
    found: Set[str] = set()
    pending = [collection_id]
    while pending:
        current = pending.pop()
        for child_id in children_of.get(current, []):
            if child_id not in found:
                found.add(child_id)
                pending.append(child_id)
    return found


def delete_collection(db: Session, user_id: int, collection_id: str) -> Set[str]:
    """Delete a collection with every descendant collection and request.

    Returns the ids of all removed collections.
    """
    store = UserScopedStore(db, models.Collection, user_id)
    collection = store.require(collection_id, "Collection")
    parent_id = collection.parent_id
    doomed = descendant_ids(store, collection_id) | {collection_id}

    request_store = UserScopedStore(db, models.CollectionRequest, user_id)
    for request in request_store.query(models.CollectionRequest.collection_id.in_(doomed)):
        db.delete(request)
    nodes = store.query(models.Collection.id.in_(doomed))
    # Unlink first so the self-referencing foreign key holds whatever order
    # the deletes are flushed in.
    for node in nodes:
        node.parent_id = None
    db.flush()
    for node in nodes:
        db.delete(node)
    db.flush()
    _renumber(_siblings(store, parent_id))
    commit(db)
    return doomed


def _is_ancestor_or_self(store: UserScopedStore, candidate_id: str, node_id: Optional[str]) -> bool:
    """Walk up from ``node_id`` and report whether ``candidate_id`` is on the path."""
    seen = set()
    while node_id is not None and node_id not in seen:
        if node_id == candidate_id:
            return True
        seen.add(node_id)
        parent = store.get(node_id)
        node_id = parent.parent_id if parent is not None else None
    return False


def move_collection(
    db: Session, user_id: int, collection_id: str, parent_id: Optional[str], order: Optional[int] = None
) -> models.Collection:
    store = UserScopedStore(db, models.Collection, user_id)
    collection = store.require(collection_id, "Collection")
    if parent_id is not None:
        store.require(parent_id, "Parent collection")
        if _is_ancestor_or_self(store, collection_id, parent_id):
            raise CycleError("Cannot move a collection into itself or one of its descendants")

    old_parent_id = collection.parent_id
    collection.parent_id = parent_id
    if old_parent_id != parent_id:
        _renumber(_siblings(store, old_parent_id), without=collection)
    _renumber(_siblings(store, parent_id), insert=collection, position=order)
    commit(db)
    db.refresh(collection)
    return collection


def create_request(db: Session, user_id: int, collection_id: str, data: Dict) -> models.CollectionRequest:
    store = UserScopedStore(db, models.CollectionRequest, user_id)
    UserScopedStore(db, models.Collection, user_id).require(collection_id, "Collection")
    request = models.CollectionRequest(
        collection_id=collection_id,
        order_index=len(_requests_of(store, collection_id)),
        **data,
    )
    return store.put(request)


def update_request(db: Session, user_id: int, request_id: str, changes: Dict) -> models.CollectionRequest:
    store = UserScopedStore(db, models.CollectionRequest, user_id)
    request = store.require(request_id, "Request")
    for key, value in changes.items():
        setattr(request, key, value)
    return store.put(request)


def delete_request(db: Session, user_id: int, request_id: str) -> None:
    store = UserScopedStore(db, models.CollectionRequest, user_id)
    request = store.require(request_id, "Request")
    collection_id = request.collection_id
    db.delete(request)
    db.flush()
    _renumber(_requests_of(store, collection_id))
    commit(db)


def move_request(
    db: Session, user_id: int, request_id: str, collection_id: str, order: Optional[int] = None
) -> models.CollectionRequest:
    store = UserScopedStore(db, models.CollectionRequest, user_id)
    request = store.require(request_id, "Request")
    UserScopedStore(db, models.Collection, user_id).require(collection_id, "Collection")

    old_collection_id = request.collection_id
    request.collection_id = collection_id
    if old_collection_id != collection_id:
        _renumber(_requests_of(store, old_collection_id), without=request)
    _renumber(_requests_of(store, collection_id), insert=request, position=order)
    commit(db)
    db.refresh(request)
    return request


def duplicate_request(
    db: Session, user_id: int, request_id: str, collection_id: Optional[str] = None
) -> models.CollectionRequest:
    store = UserScopedStore(db, models.CollectionRequest, user_id)
    original = store.require(request_id, "Request")
    target_id = collection_id or original.collection_id
    return create_request(
        db,
        user_id,
        target_id,
        {
            "name": f"{original.name} (copy)",
            "method": original.method,
            "url": original.url,
            "headers": dict(original.headers or {}),
            "query_params": dict(original.query_params or {}),
            "body": original.body,
            "auth": original.auth,
        },
    )
