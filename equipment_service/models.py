from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EquipmentStatus(str, PyEnum):
    """
    Operational status of a piece of equipment.

    Values
    ------
    active
        In service; the only status under which the item can be booked.
    under_maintenance
        Temporarily out of service for repair or calibration.
    decommissioned
        Permanently retired.
    reserved
        Held for a purpose outside the booking calendar.
    """
    ACTIVE = "active"
    UNDER_MAINTENANCE = "under_maintenance"
    DECOMMISSIONED = "decommissioned"
    RESERVED = "reserved"


class MaintenanceType(str, PyEnum):
    ROUTINE = "routine"
    REPAIR = "repair"
    CALIBRATION = "calibration"
    INSPECTION = "inspection"
    OTHER = "other"


class RemarkType(str, PyEnum):
    DAMAGE = "damage"
    MALFUNCTION = "malfunction"
    DECOMMISSION = "decommission"
    GENERAL = "general"
    ISSUE = "issue"


class RemarkSeverity(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EquipmentCategory(Base):
    """
    Grouping for equipment (e.g. 'Microscopes', 'Centrifuges').

    Attributes
    ----------
    id : int
        Primary key.
    name : str
        Unique category name.
    description : str
        Optional free-text description.
    color : str
        Optional display colour (hex string).
    icon : str
        Optional icon identifier used by the browser client.
    """
    __tablename__ = "equipment_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=True)
    icon = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    equipment = relationship("Equipment", back_populates="category")


class Equipment(Base):
    """
    SQLAlchemy model representing a laboratory asset.

    Attributes
    ----------
    id : int
        Primary key.
    name : str
        Human-readable equipment name.
    category_id : int
        Optional reference to an EquipmentCategory.
    location : str
        Room, bench or building where the item lives.
    model_number, serial_number : str
        Manufacturer identifiers; the serial number is unique when present.
    purchase_year : int
        Year of acquisition.
    purchase_cost : Decimal
        Acquisition cost.
    status : EquipmentStatus
        Operational status.
    operating_notes : str
        Free-text operating instructions.
    image_url : str
        Link to a picture of the item.
    is_bookable : bool
        Whether users may reserve time slots on this item.
    requires_approval : bool
        Whether new bookings start as 'pending' and need an admin decision.
    created_by : int
        ID of the admin who registered the item.
    """
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("equipment_categories.id"), nullable=True, index=True)
    location = Column(String(255), nullable=True)
    model_number = Column(String(100), nullable=True)
    serial_number = Column(String(100), unique=True, nullable=True)
    purchase_year = Column(Integer, nullable=True)
    purchase_cost = Column(Numeric(12, 2), nullable=True)
    status = Column(Enum(EquipmentStatus), nullable=False, default=EquipmentStatus.ACTIVE)
    operating_notes = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_bookable = Column(Boolean, nullable=False, default=True)
    requires_approval = Column(Boolean, nullable=False, default=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    category = relationship("EquipmentCategory", back_populates="equipment")
    maintenance_records = relationship(
        "MaintenanceRecord",
        back_populates="equipment",
        cascade="all, delete-orphan",
    )
    remarks = relationship(
        "EquipmentRemark",
        back_populates="equipment",
        cascade="all, delete-orphan",
    )
    specs = relationship(
        "EquipmentSpec",
        back_populates="equipment",
        cascade="all, delete-orphan",
    )


class MaintenanceRecord(Base):
    """
    One entry in an item's maintenance history.

    Attributes
    ----------
    maintenance_type : MaintenanceType
        Kind of work performed.
    performed_by : int
        ID of the admin who logged the work.
    performed_date : date
        Day the work was done.
    next_maintenance_date : date
        Optional due date for the next intervention.
    """
    __tablename__ = "maintenance_history"

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    maintenance_type = Column(Enum(MaintenanceType), nullable=False)
    description = Column(Text, nullable=False)
    performed_by = Column(Integer, nullable=True)
    performed_date = Column(Date, nullable=False)
    cost = Column(Numeric(12, 2), nullable=True)
    next_maintenance_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    equipment = relationship("Equipment", back_populates="maintenance_records")


class EquipmentRemark(Base):
    """
    An issue or observation reported against a piece of equipment.

    Remarks are opened by any user and closed (resolved) by an admin.
    """
    __tablename__ = "equipment_remarks"

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    remark_type = Column(Enum(RemarkType), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(Enum(RemarkSeverity), nullable=True)
    reported_by = Column(Integer, nullable=True)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_by = Column(Integer, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    equipment = relationship("Equipment", back_populates="remarks")


class EquipmentSpec(Base):
    """
    A technical specification line of an item, e.g. 'Magnification: 1000 x'.

    Attributes
    ----------
    spec_key : str
        Specification name, unique per equipment.
    spec_value : str
        Optional value.
    spec_unit : str
        Optional unit shown after the value.
    display_order : int
        Sort position on the detail page; ties sort by key.
    """
    __tablename__ = "equipment_specs"
    __table_args__ = (
        UniqueConstraint("equipment_id", "spec_key", name="uq_equipment_spec_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    spec_key = Column(String(100), nullable=False)
    spec_value = Column(Text, nullable=True)
    spec_unit = Column(String(50), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    equipment = relationship("Equipment", back_populates="specs")
