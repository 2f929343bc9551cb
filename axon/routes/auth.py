from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..dependencies import get_code_sender, get_current_user
from ..services import auth as auth_service
from ..services.verification import CodeSender

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=schemas.AuthResponse)
def register(payload: schemas.RegisterIn, db: Session = Depends(get_db)):
    user, token = auth_service.register(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        phone=payload.phone,
    )
    return {"success": True, "user": user, "token": token}


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    payload: schemas.LoginIn,
    db: Session = Depends(get_db),
    sender: CodeSender = Depends(get_code_sender),
):
    user, token = auth_service.login(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        phone=payload.phone,
        verification_code=payload.verification_code,
        sender=sender,
    )
    return {"success": True, "user": user, "token": token}


@router.post("/send-code")
def send_code(payload: schemas.SendCodeIn, sender: CodeSender = Depends(get_code_sender)):
    auth_service.send_verification_code(payload.phone, sender=sender)
    return {"success": True}


@router.get("/profile", response_model=schemas.UserResponse)
def profile(current_user: models.User = Depends(get_current_user)):
    return {"success": True, "user": current_user}


@router.put("/profile", response_model=schemas.UserResponse)
def update_profile(
    payload: schemas.ProfileUpdateIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    user = auth_service.update_profile(db, current_user, payload.model_dump(exclude_unset=True))
    return {"success": True, "user": user}


@router.delete("/profile")
def deactivate(
    db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)
):
    auth_service.deactivate(db, current_user)
    return {"success": True}


@router.post("/change-password")
def change_password(
    payload: schemas.ChangePasswordIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    auth_service.change_password(db, current_user, payload.old_password, payload.new_password)
    return {"success": True}
