from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..crud import UserScopedStore
from ..database import get_db
from ..dependencies import get_current_user
from ..errors import NotFoundError

router = APIRouter(prefix="/api/environments", tags=["environments"])


def _store(db: Session, user: models.User) -> UserScopedStore:
    return UserScopedStore(db, models.Environment, user.id)


@router.get("")
def list_environments(
    db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)
):
    environments = _store(db, current_user).query(order_by=models.Environment.created_at.desc())
    return {
        "success": True,
        "environments": [schemas.EnvironmentOut.model_validate(env) for env in environments],
    }


@router.post("")
def create_environment(
    payload: schemas.EnvironmentIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    environment = _store(db, current_user).put(
        models.Environment(name=payload.name, variables=payload.variables)
    )
    return {"success": True, "environment": schemas.EnvironmentOut.model_validate(environment)}


@router.put("/{env_id}")
def update_environment(
    env_id: int,
    payload: schemas.EnvironmentUpdateIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    store = _store(db, current_user)
    environment = store.require(env_id, "Environment")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in changes.items():
        setattr(environment, key, value)
    environment = store.put(environment)
    return {"success": True, "environment": schemas.EnvironmentOut.model_validate(environment)}


@router.post("/{env_id}/activate")
def activate_environment(
    env_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    environment = crud.activate_environment(_store(db, current_user), env_id)
    return {"success": True, "environment": schemas.EnvironmentOut.model_validate(environment)}


@router.delete("/{env_id}")
def delete_environment(
    env_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not _store(db, current_user).delete(env_id):
        raise NotFoundError("Environment not found")
    return {"success": True}
