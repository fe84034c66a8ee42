from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import ApprovalStatus, UserRole


# ---------- Input schemas ----------
class UserCreate(BaseModel):
    """
    Schema for user registration input.
    Public registration does NOT accept role or approval status; both are
    assigned internally.
    """
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str
    department: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)


class PasswordChange(BaseModel):
    """
    Schema for a user changing their own password.

    Attributes
    ----------
    current_password : str
        Must match the stored hash.
    new_password : str
        The replacement, subject to the strength rules.
    """
    current_password: str
    new_password: str


# ---------- Output schemas ----------

class UserRead(BaseModel):
    """
    Schema returned when reading user information.

    Exposes safe, non-sensitive fields and hides the password hash.
    """
    id: int
    email: EmailStr
    full_name: str
    role: UserRole
    approval_status: ApprovalStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RegistrationResult(BaseModel):
    message: str
    user: UserRead


# ---------- Token schemas ----------

class Token(BaseModel):
    """
    Schema for JWT access token responses.

    Attributes
    ----------
    access_token : str
        Encoded JWT.
    token_type : str
        Token type, usually 'bearer'.
    """
    access_token: str
    token_type: str = "bearer"


# ---------- Site settings ----------

class SettingUpdate(BaseModel):
    setting_value: Optional[str] = None


class SettingRead(BaseModel):
    id: int
    setting_key: str
    setting_value: Optional[str] = None
    description: Optional[str] = None
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
