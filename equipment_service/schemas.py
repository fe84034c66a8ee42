from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import (
    EquipmentStatus,
    MaintenanceType,
    RemarkSeverity,
    RemarkType,
)


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


# ---------- Categories ----------


class CategoryBase(BaseModel):
    """
    Shared fields for equipment categories.
    """
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(CategoryBase):
    """
    Categories are replaced wholesale on update, so the name is required.
    """
    pass


class CategoryRead(CategoryBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- Equipment ----------


class EquipmentBase(BaseModel):
    """
    Base schema for equipment registry information.

    Shared fields used when creating and reading equipment.
    """
    name: str = Field(..., max_length=200)
    category_id: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None
    purchase_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    purchase_cost: Optional[float] = Field(default=None, ge=0)
    status: EquipmentStatus = EquipmentStatus.ACTIVE
    operating_notes: Optional[str] = None
    image_url: Optional[str] = None
    is_bookable: bool = True
    requires_approval: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class EquipmentCreate(EquipmentBase):
    """
    Schema for registering a new piece of equipment.
    """
    pass


class EquipmentUpdate(BaseModel):
    """
    Schema for partial updates to equipment.

    All fields are optional and only provided values will be applied.
    """
    name: Optional[str] = Field(default=None, max_length=200)
    category_id: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None
    purchase_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    purchase_cost: Optional[float] = Field(default=None, ge=0)
    status: Optional[EquipmentStatus] = None
    operating_notes: Optional[str] = None
    image_url: Optional[str] = None
    is_bookable: Optional[bool] = None
    requires_approval: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _strip_required(v)


class EquipmentRead(EquipmentBase):
    """
    Schema returned when reading equipment.

    Extends EquipmentBase with identifiers and audit timestamps.
    """
    id: int
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- Maintenance ----------


class MaintenanceBase(BaseModel):
    maintenance_type: MaintenanceType
    description: str
    performed_date: date
    cost: Optional[float] = Field(default=None, ge=0)
    next_maintenance_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class MaintenanceCreate(MaintenanceBase):
    equipment_id: int = Field(..., ge=1)


class MaintenanceUpdate(MaintenanceBase):
    pass


class MaintenanceRead(MaintenanceBase):
    id: int
    equipment_id: int
    performed_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- Remarks ----------


class RemarkCreate(BaseModel):
    """
    Schema for reporting an issue or observation on a piece of equipment.
    """
    equipment_id: int = Field(..., ge=1)
    remark_type: RemarkType
    description: str
    severity: Optional[RemarkSeverity] = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class RemarkRead(BaseModel):
    id: int
    equipment_id: int
    remark_type: RemarkType
    description: str
    severity: Optional[RemarkSeverity] = None
    reported_by: Optional[int] = None
    resolved: bool
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- Specifications ----------


class SpecUpsert(BaseModel):
    """
    Create or replace the specification named `spec_key`.
    """
    spec_key: str = Field(..., max_length=100)
    spec_value: Optional[str] = None
    spec_unit: Optional[str] = Field(default=None, max_length=50)
    display_order: int = 0

    @field_validator("spec_key")
    @classmethod
    def key_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class SpecRead(SpecUpsert):
    id: int
    equipment_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
