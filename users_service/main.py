import re
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from common.cache import delete_prefix, get_cached_json, set_cached_json
from common.logging_config import configure_logging

from . import models, schemas
from .auth import (
    authenticate_user,
    get_current_user,
    get_password_hash,
    get_user_by_email,
    require_roles,
    token_for_user,
    verify_password,
)
from .database import Base, SessionLocal, engine, get_db
from .models import ApprovalStatus, UserRole, utcnow
from .rate_limiter import ip_rate_limiter

SERVICE_NAME = "users"

logger = configure_logging("users_service")

# Create tables on startup
Base.metadata.create_all(bind=engine)

DEFAULT_SETTINGS = {
    "site_name": ("Lab Equipment Manager", "Name shown in the application header"),
}


def seed_default_settings(db: Session) -> None:
    """
    Insert every key of DEFAULT_SETTINGS that is not stored yet.
    Existing values are left alone.
    """
    existing = {key for (key,) in db.query(models.SiteSetting.setting_key).all()}
    for key, (value, description) in DEFAULT_SETTINGS.items():
        if key not in existing:
            db.add(models.SiteSetting(setting_key=key, setting_value=value, description=description))
    db.commit()


with SessionLocal() as seed_session:
    seed_default_settings(seed_session)

app = FastAPI(title="Users Service", version="1.0.0")
router_v1 = APIRouter(prefix="/api/v1")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "service": SERVICE_NAME,
            "path": request.url.path,
            "method": request.method,
            "status_code": exc.status_code,
            "detail": exc.detail,
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "service": SERVICE_NAME,
            "path": request.url.path,
            "method": request.method,
            "status_code": 500,
            "detail": "Internal server error",
        },
    )


@app.get("/")
def root():
    return {"service": SERVICE_NAME, "status": "running"}


# ---------- Password Strength ----------

def validate_password_strength(password: str):
    """
    Validate password complexity rules.

    A valid password must be at least 8 characters long and contain at
    least one letter and one digit.

    Raises
    ------
    HTTPException
        If the password does not meet the strength requirements.
    """
    if len(password) < 8:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 8 characters long",
        )
    if not re.search(r"[A-Za-z]", password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must contain at least one letter",
        )
    if not re.search(r"\d", password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must contain at least one digit",
        )


# ---------- Registration ----------

@router_v1.post(
    "/auth/register",
    response_model=schemas.RegistrationResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(ip_rate_limiter)],
)
def register_user(user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    """
    Register a new lab member.

    Behavior:
    - The first account ever created is bootstrapped as an approved ADMIN.
    - Every later registration is a USER waiting for admin approval.
    - Email must be unique.
    - Password strength is validated before hashing.

    Returns
    -------
    RegistrationResult
        The new user and a message describing whether approval is pending.

    Raises
    ------
    HTTPException
        If the email already exists or the password is weak.
    """
    if get_user_by_email(db, user_in.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    validate_password_strength(user_in.password)

    is_first_user = db.query(models.User).count() == 0
    user = models.User(
        email=user_in.email,
        full_name=user_in.full_name.strip(),
        hashed_password=get_password_hash(user_in.password),
        department=user_in.department,
        phone=user_in.phone,
        role=UserRole.ADMIN if is_first_user else UserRole.USER,
        approval_status=ApprovalStatus.APPROVED if is_first_user else ApprovalStatus.PENDING,
    )
    if is_first_user:
        user.approved_at = utcnow()

    db.add(user)
    db.commit()
    db.refresh(user)

    if is_first_user:
        logger.info("Bootstrapped first account %s as admin", user.email)
        message = "Admin account created successfully"
    else:
        logger.info("Registered user %s, awaiting approval", user.email)
        message = "Registration successful. Awaiting admin approval."
    return {"message": message, "user": user}


# ---------- Login (token) ----------

@router_v1.post("/auth/login", response_model=schemas.Token, dependencies=[Depends(ip_rate_limiter)])
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    Authenticate with email (sent as the OAuth2 ``username`` field) and
    password, and return a JWT access token.

    Raises
    ------
    HTTPException
        401 on bad credentials; 403 if the account is pending, rejected
        or deactivated.
    """
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user:
        logger.warning("Failed login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    if user.approval_status == ApprovalStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is pending admin approval",
        )
    if user.approval_status == ApprovalStatus.REJECTED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account registration was rejected",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    return {"access_token": token_for_user(user), "token_type": "bearer"}


# ---------- Current user ----------

@router_v1.get("/auth/me", response_model=schemas.UserRead)
def get_my_profile(current_user: models.User = Depends(get_current_user)):
    return current_user


@router_v1.post("/auth/change-password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    body: schemas.PasswordChange,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Change the caller's password after checking the current one.

    Raises
    ------
    HTTPException
        400 if the current password is wrong or the new one is weak.
    """
    if not verify_password(body.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    validate_password_strength(body.new_password)
    current_user.hashed_password = get_password_hash(body.new_password)
    db.add(current_user)
    db.commit()
    return


# ---------- helpers ----------

admin_only = require_roles(UserRole.ADMIN)


def get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )
    return user


def save_user(db: Session, user: models.User) -> models.User:
    db.add(user)
    db.commit()
    db.refresh(user)
    delete_prefix(f"user:{user.id}")
    return user


# ---------- Admin: directory ----------

@router_v1.get("/users", response_model=List[schemas.UserRead])
def list_users(
    role: Optional[UserRole] = None,
    approval_status: Optional[ApprovalStatus] = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(admin_only),
):
    """
    Admin: list users, optionally filtered by role and approval status,
    newest first.
    """
    query = db.query(models.User)
    if role is not None:
        query = query.filter(models.User.role == role)
    if approval_status is not None:
        query = query.filter(models.User.approval_status == approval_status)
    return query.order_by(models.User.created_at.desc(), models.User.id.desc()).all()


@router_v1.get("/users/pending", response_model=List[schemas.UserRead])
def list_pending_users(
    db: Session = Depends(get_db),
    _: models.User = Depends(admin_only),
):
    """Admin: registrations waiting for a decision, oldest first."""
    return (
        db.query(models.User)
        .filter(models.User.approval_status == ApprovalStatus.PENDING)
        .order_by(models.User.created_at.asc(), models.User.id.asc())
        .all()
    )


@router_v1.get("/users/{user_id}", response_model=schemas.UserRead)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(admin_only),
):
    cache_key = f"user:{user_id}"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    user = get_user_or_404(db, user_id)
    data = schemas.UserRead.model_validate(user).model_dump(mode="json")
    set_cached_json(cache_key, data, ttl_seconds=300)
    return user


# ---------- Admin: approval workflow ----------

@router_v1.post("/users/{user_id}/approve", response_model=schemas.UserRead)
def approve_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_only),
):
    """
    Admin: approve a registration so the user can log in.

    Raises
    ------
    HTTPException
        404 if the user does not exist; 400 if already approved.
    """
    user = get_user_or_404(db, user_id)
    if user.approval_status == ApprovalStatus.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already approved",
        )

    user.approval_status = ApprovalStatus.APPROVED
    user.approved_by = admin.id
    user.approved_at = utcnow()
    save_user(db, user)

    logger.info("User %s approved by admin %s", user.id, admin.id)
    return user


@router_v1.post("/users/{user_id}/reject", response_model=schemas.UserRead)
def reject_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_only),
):
    """
    Admin: reject a registration. Rejected users cannot log in.
    """
    user = get_user_or_404(db, user_id)
    if user.approval_status == ApprovalStatus.REJECTED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already rejected",
        )
    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot reject your own account",
        )

    user.approval_status = ApprovalStatus.REJECTED
    user.approved_by = admin.id
    user.approved_at = utcnow()
    save_user(db, user)

    logger.info("User %s rejected by admin %s", user.id, admin.id)
    return user


# ---------- Admin: role management ----------

@router_v1.post("/users/{user_id}/promote", response_model=schemas.UserRead)
def promote_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_only),
):
    """
    Admin: grant the admin role to an approved user.

    Raises
    ------
    HTTPException
        400 if the user is not approved or is already an admin.
    """
    user = get_user_or_404(db, user_id)
    if user.approval_status != ApprovalStatus.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only approved users can be promoted",
        )
    if user.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already an admin",
        )

    user.role = UserRole.ADMIN
    save_user(db, user)

    logger.info("User %s promoted to admin by %s", user.id, admin.id)
    return user


@router_v1.post("/users/{user_id}/demote", response_model=schemas.UserRead)
def demote_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_only),
):
    """
    Admin: take the admin role away from another admin.
    """
    user = get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot demote yourself",
        )
    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not an admin",
        )

    user.role = UserRole.USER
    save_user(db, user)

    logger.info("User %s demoted to user by %s", user.id, admin.id)
    return user


# ---------- Admin: activation ----------

@router_v1.post("/users/{user_id}/deactivate", response_model=schemas.UserRead)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_only),
):
    user = get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate yourself",
        )

    user.is_active = False
    save_user(db, user)

    logger.info("User %s deactivated by %s", user.id, admin.id)
    return user


@router_v1.post("/users/{user_id}/activate", response_model=schemas.UserRead)
def activate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_only),
):
    user = get_user_or_404(db, user_id)
    user.is_active = True
    save_user(db, user)

    logger.info("User %s activated by %s", user.id, admin.id)
    return user


# ---------- Site settings ----------

def get_setting_or_404(db: Session, key: str) -> models.SiteSetting:
    setting = (
        db.query(models.SiteSetting)
        .filter(models.SiteSetting.setting_key == key)
        .first()
    )
    if not setting:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found"
        )
    return setting


@router_v1.get("/settings", response_model=List[schemas.SettingRead])
def list_settings(
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """List every site setting ordered by key."""
    return (
        db.query(models.SiteSetting)
        .order_by(models.SiteSetting.setting_key.asc())
        .all()
    )


@router_v1.get("/settings/{key}", response_model=schemas.SettingRead)
def get_setting(
    key: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    return get_setting_or_404(db, key)


@router_v1.put("/settings/{key}", response_model=schemas.SettingRead)
def update_setting(
    key: str,
    body: schemas.SettingUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_only),
):
    """
    Change the value of an existing setting.

    Access
    ------
    - Admin only. The caller is recorded as `updated_by`.

    Raises
    ------
    HTTPException
        404 if no setting has this key; new keys cannot be created here.
    """
    setting = get_setting_or_404(db, key)
    setting.setting_value = body.setting_value
    setting.updated_by = admin.id
    db.add(setting)
    db.commit()
    db.refresh(setting)

    logger.info("Setting %s changed by %s", key, admin.id)
    return setting


app.include_router(router_v1)
