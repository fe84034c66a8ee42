from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, Text

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, PyEnum):
    """
    Roles a lab member can hold.

    Roles
    -----
    admin
        Manages equipment, approves accounts and bookings.
    user
        Approved lab member; books equipment and reports issues.

    Tokens minted for calls between services carry the extra pseudo-role
    ``service_account``; it is never stored on a user row.
    """
    ADMIN = "admin"
    USER = "user"


class ApprovalStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(Base):
    """
    SQLAlchemy model for lab members.

    New registrations wait in ``pending`` until an admin approves them;
    only approved, active accounts can log in.

    Attributes
    ----------
    id : int
        Primary key.
    email : str
        Unique email address, used as the login name.
    full_name : str
        Display name.
    hashed_password : str
        Bcrypt-hashed password.
    role : UserRole
        Role controlling access privileges.
    approval_status : ApprovalStatus
        Where the account is in the approval workflow.
    approved_by : Optional[int]
        Admin who approved or rejected the account.
    approved_at : Optional[datetime]
        When that decision was taken.
    department, phone : Optional[str]
        Contact details.
    is_active : bool
        Deactivated accounts cannot log in.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.USER)
    approval_status = Column(
        Enum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING
    )
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    department = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)


class SiteSetting(Base):
    """
    A site-wide key/value setting, such as the name shown in the
    browser client's header.

    Keys are created by `seed_default_settings`; admins can only change
    the values of existing keys.
    """
    __tablename__ = "site_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), unique=True, index=True, nullable=False)
    setting_value = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    updated_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)
