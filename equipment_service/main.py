from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from common.auth import ADMIN_ROLE, SERVICE_ACCOUNT_ROLE, USER_ROLE, require_roles
from common.cache import get_cached_json, invalidate, set_cached_json
from common.logging_config import configure_logging

from . import models, schemas
from .database import Base, engine, get_db

SERVICE_NAME = "equipment"

logger = configure_logging("equipment_service")

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Equipment Service", version="1.0.0")
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
    """
    Health-check endpoint for the Equipment service.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": SERVICE_NAME, "status": "running"}


admin_only = require_roles(ADMIN_ROLE)

member_roles = require_roles(ADMIN_ROLE, USER_ROLE)

viewer_roles = require_roles(
    ADMIN_ROLE,
    USER_ROLE,
    SERVICE_ACCOUNT_ROLE,  # bookings service looks up bookability flags
)

NON_NULLABLE_FIELDS = {"name", "status", "is_bookable", "requires_approval"}


def get_equipment_or_404(db: Session, equipment_id: int) -> models.Equipment:
    equipment = (
        db.query(models.Equipment).filter(models.Equipment.id == equipment_id).first()
    )
    if not equipment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Equipment not found",
        )
    return equipment


def ensure_category_exists(db: Session, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    exists = (
        db.query(models.EquipmentCategory)
        .filter(models.EquipmentCategory.id == category_id)
        .first()
    )
    if not exists:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category does not exist",
        )


def ensure_serial_unique(
    db: Session, serial_number: Optional[str], ignore_equipment_id: Optional[int] = None
) -> None:
    if not serial_number:
        return
    q = db.query(models.Equipment).filter(models.Equipment.serial_number == serial_number)
    if ignore_equipment_id is not None:
        q = q.filter(models.Equipment.id != ignore_equipment_id)
    if q.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Serial number already exists",
        )


def commit_or_400(db: Session, detail: str) -> None:
    """
    Commit the session, turning a unique-constraint race into HTTP 400.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# ---------- Categories ----------


@router_v1.get("/categories", response_model=List[schemas.CategoryRead])
def list_categories(
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    """List all equipment categories ordered by name."""
    return (
        db.query(models.EquipmentCategory)
        .order_by(models.EquipmentCategory.name.asc())
        .all()
    )


@router_v1.get("/categories/{category_id}", response_model=schemas.CategoryRead)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    category = (
        db.query(models.EquipmentCategory)
        .filter(models.EquipmentCategory.id == category_id)
        .first()
    )
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


@router_v1.post(
    "/categories",
    response_model=schemas.CategoryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    category_in: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    """
    Create a new equipment category.

    Access
    ------
    - Admin only.

    Raises
    ------
    HTTPException
        If a category with the same name already exists.
    """
    existing = (
        db.query(models.EquipmentCategory)
        .filter(models.EquipmentCategory.name == category_in.name)
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category name already exists",
        )

    category = models.EquipmentCategory(**category_in.model_dump())
    db.add(category)
    commit_or_400(db, "Category name already exists")
    db.refresh(category)
    return category


@router_v1.put("/categories/{category_id}", response_model=schemas.CategoryRead)
def update_category(
    category_id: int,
    update_data: schemas.CategoryUpdate,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    category = (
        db.query(models.EquipmentCategory)
        .filter(models.EquipmentCategory.id == category_id)
        .first()
    )
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

    if update_data.name != category.name:
        clash = (
            db.query(models.EquipmentCategory)
            .filter(models.EquipmentCategory.name == update_data.name)
            .first()
        )
        if clash:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Category name already exists",
            )

    for field, value in update_data.model_dump().items():
        setattr(category, field, value)

    db.add(category)
    commit_or_400(db, "Category name already exists")
    db.refresh(category)
    return category


@router_v1.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    """
    Delete a category that no equipment refers to.

    Raises
    ------
    HTTPException
        404 if the category is missing, 400 if equipment still uses it.
    """
    category = (
        db.query(models.EquipmentCategory)
        .filter(models.EquipmentCategory.id == category_id)
        .first()
    )
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

    in_use = (
        db.query(models.Equipment)
        .filter(models.Equipment.category_id == category_id)
        .count()
    )
    if in_use > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete category with associated equipment",
        )

    db.delete(category)
    db.commit()
    return


# ---------- Equipment ----------


@router_v1.get("/equipment", response_model=List[schemas.EquipmentRead])
def list_equipment(
    category_id: Optional[int] = Query(default=None, ge=1),
    status_filter: Optional[models.EquipmentStatus] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    """
    Retrieve equipment with optional filters.

    Parameters
    ----------
    category_id : Optional[int]
        Only equipment in this category.
    status : Optional[EquipmentStatus]
        Only equipment with this operational status.
    search : Optional[str]
        Case-insensitive substring matched against name, model number
        and serial number.

    Returns
    -------
    List[EquipmentRead]
        Matching equipment, newest first.
    """
    q = db.query(models.Equipment)

    if category_id is not None:
        q = q.filter(models.Equipment.category_id == category_id)

    if status_filter is not None:
        q = q.filter(models.Equipment.status == status_filter)

    if search:
        pattern = f"%{search}%"
        q = q.filter(
            or_(
                models.Equipment.name.ilike(pattern),
                models.Equipment.model_number.ilike(pattern),
                models.Equipment.serial_number.ilike(pattern),
            )
        )

    return q.order_by(models.Equipment.created_at.desc(), models.Equipment.id.desc()).all()


@router_v1.get("/equipment/{equipment_id}", response_model=schemas.EquipmentRead)
def get_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    """
    Retrieve a single piece of equipment.

    This is also the lookup the Bookings service performs (with a
    service-account token) to read `is_bookable`, `status` and
    `requires_approval` before accepting a booking.

    Raises
    ------
    HTTPException
        If the equipment does not exist.
    """
    cache_key = f"equipment:{equipment_id}"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    equipment = get_equipment_or_404(db, equipment_id)
    data = schemas.EquipmentRead.model_validate(equipment).model_dump(mode="json")
    set_cached_json(cache_key, data, ttl_seconds=300)
    return equipment


@router_v1.post(
    "/equipment",
    response_model=schemas.EquipmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_equipment(
    equipment_in: schemas.EquipmentCreate,
    db: Session = Depends(get_db),
    claims: Dict = Depends(admin_only),
):
    """
    Register a new piece of equipment.

    Access
    ------
    - Admin only.

    Behavior
    --------
    - Category, when given, must exist.
    - Serial number, when given, must be unique.
    - `created_by` is taken from the caller's token.
    """
    ensure_category_exists(db, equipment_in.category_id)
    ensure_serial_unique(db, equipment_in.serial_number)

    equipment = models.Equipment(
        **equipment_in.model_dump(),
        created_by=claims["user_id"],
    )
    db.add(equipment)
    commit_or_400(db, "Serial number already exists")
    db.refresh(equipment)
    invalidate("equipment:")
    logger.info("Equipment %s (%s) registered by user %s", equipment.id, equipment.name, claims["user_id"])
    return equipment


@router_v1.put("/equipment/{equipment_id}", response_model=schemas.EquipmentRead)
def update_equipment(
    equipment_id: int,
    update_data: schemas.EquipmentUpdate,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    """
    Update an existing piece of equipment.

    Only the fields present in the request body are applied. Changing
    `status`, `is_bookable` or `requires_approval` affects new bookings
    only; existing bookings are left untouched.
    """
    equipment = get_equipment_or_404(db, equipment_id)
    changes = update_data.model_dump(exclude_unset=True)

    if "category_id" in changes:
        ensure_category_exists(db, changes["category_id"])
    if changes.get("serial_number"):
        ensure_serial_unique(db, changes["serial_number"], ignore_equipment_id=equipment.id)

    for field, value in changes.items():
        if field in NON_NULLABLE_FIELDS and value is None:
            continue
        setattr(equipment, field, value)

    db.add(equipment)
    commit_or_400(db, "Serial number already exists")
    db.refresh(equipment)
    invalidate("equipment:")
    return equipment


@router_v1.delete("/equipment/{equipment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    claims: Dict = Depends(admin_only),
):
    """
    Permanently delete a piece of equipment.

    Its maintenance history, remarks and specifications are deleted
    with it.
    """
    equipment = get_equipment_or_404(db, equipment_id)
    db.delete(equipment)
    db.commit()
    invalidate("equipment:")
    logger.info("Equipment %s deleted by user %s", equipment_id, claims["user_id"])
    return


@router_v1.get(
    "/equipment/{equipment_id}/maintenance",
    response_model=List[schemas.MaintenanceRead],
)
def get_equipment_maintenance_history(
    equipment_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    get_equipment_or_404(db, equipment_id)
    return (
        db.query(models.MaintenanceRecord)
        .filter(models.MaintenanceRecord.equipment_id == equipment_id)
        .order_by(models.MaintenanceRecord.performed_date.desc(), models.MaintenanceRecord.id.desc())
        .all()
    )


@router_v1.get(
    "/equipment/{equipment_id}/remarks",
    response_model=List[schemas.RemarkRead],
)
def get_equipment_remarks(
    equipment_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    get_equipment_or_404(db, equipment_id)
    return (
        db.query(models.EquipmentRemark)
        .filter(models.EquipmentRemark.equipment_id == equipment_id)
        .order_by(models.EquipmentRemark.created_at.desc(), models.EquipmentRemark.id.desc())
        .all()
    )


# ---------- Specifications ----------


@router_v1.get(
    "/equipment/{equipment_id}/specs",
    response_model=List[schemas.SpecRead],
)
def list_equipment_specs(
    equipment_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    """List an item's technical specifications by display order, then key."""
    get_equipment_or_404(db, equipment_id)
    return (
        db.query(models.EquipmentSpec)
        .filter(models.EquipmentSpec.equipment_id == equipment_id)
        .order_by(models.EquipmentSpec.display_order.asc(), models.EquipmentSpec.spec_key.asc())
        .all()
    )


@router_v1.post(
    "/equipment/{equipment_id}/specs",
    response_model=schemas.SpecRead,
    status_code=status.HTTP_201_CREATED,
)
def save_equipment_spec(
    equipment_id: int,
    spec_in: schemas.SpecUpsert,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    """
    Create a specification, or replace the one with the same key.

    Access
    ------
    - Admin only.

    Behavior
    --------
    - Keys are unique per equipment; saving an existing key overwrites
      its value, unit and display order.
    """
    get_equipment_or_404(db, equipment_id)

    spec = (
        db.query(models.EquipmentSpec)
        .filter(
            models.EquipmentSpec.equipment_id == equipment_id,
            models.EquipmentSpec.spec_key == spec_in.spec_key,
        )
        .first()
    )
    if spec is None:
        spec = models.EquipmentSpec(equipment_id=equipment_id, spec_key=spec_in.spec_key)

    spec.spec_value = spec_in.spec_value
    spec.spec_unit = spec_in.spec_unit
    spec.display_order = spec_in.display_order

    db.add(spec)
    commit_or_400(db, "Spec key already exists")
    db.refresh(spec)
    return spec


@router_v1.delete(
    "/equipment/{equipment_id}/specs/{spec_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_equipment_spec(
    equipment_id: int,
    spec_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    spec = (
        db.query(models.EquipmentSpec)
        .filter(
            models.EquipmentSpec.id == spec_id,
            models.EquipmentSpec.equipment_id == equipment_id,
        )
        .first()
    )
    if not spec:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Spec not found")
    db.delete(spec)
    db.commit()
    return


# ---------- Maintenance log ----------


@router_v1.get("/maintenance", response_model=List[schemas.MaintenanceRead])
def list_maintenance_records(
    equipment_id: Optional[int] = Query(default=None, ge=1),
    maintenance_type: Optional[models.MaintenanceType] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    """
    List maintenance records with optional filters.

    `start_date` and `end_date` bound `performed_date` inclusively.
    """
    q = db.query(models.MaintenanceRecord)

    if equipment_id is not None:
        q = q.filter(models.MaintenanceRecord.equipment_id == equipment_id)
    if maintenance_type is not None:
        q = q.filter(models.MaintenanceRecord.maintenance_type == maintenance_type)
    if start_date is not None:
        q = q.filter(models.MaintenanceRecord.performed_date >= start_date)
    if end_date is not None:
        q = q.filter(models.MaintenanceRecord.performed_date <= end_date)

    return q.order_by(
        models.MaintenanceRecord.performed_date.desc(), models.MaintenanceRecord.id.desc()
    ).all()


@router_v1.post(
    "/maintenance",
    response_model=schemas.MaintenanceRead,
    status_code=status.HTTP_201_CREATED,
)
def create_maintenance_record(
    record_in: schemas.MaintenanceCreate,
    db: Session = Depends(get_db),
    claims: Dict = Depends(admin_only),
):
    """
    Log maintenance work against a piece of equipment.

    Access
    ------
    - Admin only. The caller is recorded as `performed_by`.
    """
    get_equipment_or_404(db, record_in.equipment_id)

    record = models.MaintenanceRecord(
        **record_in.model_dump(),
        performed_by=claims["user_id"],
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@router_v1.put("/maintenance/{record_id}", response_model=schemas.MaintenanceRead)
def update_maintenance_record(
    record_id: int,
    update_data: schemas.MaintenanceUpdate,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    record = (
        db.query(models.MaintenanceRecord)
        .filter(models.MaintenanceRecord.id == record_id)
        .first()
    )
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Maintenance record not found",
        )

    for field, value in update_data.model_dump().items():
        setattr(record, field, value)

    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@router_v1.delete("/maintenance/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_maintenance_record(
    record_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    record = (
        db.query(models.MaintenanceRecord)
        .filter(models.MaintenanceRecord.id == record_id)
        .first()
    )
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Maintenance record not found",
        )
    db.delete(record)
    db.commit()
    return


# ---------- Remarks (issue log) ----------


@router_v1.get("/remarks", response_model=List[schemas.RemarkRead])
def list_remarks(
    equipment_id: Optional[int] = Query(default=None, ge=1),
    remark_type: Optional[models.RemarkType] = None,
    resolved: Optional[bool] = None,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    q = db.query(models.EquipmentRemark)

    if equipment_id is not None:
        q = q.filter(models.EquipmentRemark.equipment_id == equipment_id)
    if remark_type is not None:
        q = q.filter(models.EquipmentRemark.remark_type == remark_type)
    if resolved is not None:
        q = q.filter(models.EquipmentRemark.resolved == resolved)

    return q.order_by(
        models.EquipmentRemark.created_at.desc(), models.EquipmentRemark.id.desc()
    ).all()


@router_v1.post(
    "/remarks",
    response_model=schemas.RemarkRead,
    status_code=status.HTTP_201_CREATED,
)
def create_remark(
    remark_in: schemas.RemarkCreate,
    db: Session = Depends(get_db),
    claims: Dict = Depends(member_roles),
):
    """
    Report damage, a malfunction or a general remark on equipment.

    Access
    ------
    - Any admin or regular user. The caller is recorded as `reported_by`.
    """
    get_equipment_or_404(db, remark_in.equipment_id)

    remark = models.EquipmentRemark(
        **remark_in.model_dump(),
        reported_by=claims["user_id"],
    )
    db.add(remark)
    db.commit()
    db.refresh(remark)
    if remark.severity in (models.RemarkSeverity.HIGH, models.RemarkSeverity.CRITICAL):
        logger.warning(
            "%s remark %s reported on equipment %s",
            remark.severity.value,
            remark.id,
            remark.equipment_id,
        )
    return remark


@router_v1.patch("/remarks/{remark_id}/resolve", response_model=schemas.RemarkRead)
def resolve_remark(
    remark_id: int,
    db: Session = Depends(get_db),
    claims: Dict = Depends(admin_only),
):
    """
    Mark a remark as resolved.

    Stamps `resolved_by` with the acting admin and `resolved_at` with
    the current time.

    Raises
    ------
    HTTPException
        404 if the remark is missing, 400 if it is already resolved.
    """
    remark = (
        db.query(models.EquipmentRemark)
        .filter(models.EquipmentRemark.id == remark_id)
        .first()
    )
    if not remark:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Remark not found")
    if remark.resolved:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Remark is already resolved",
        )

    remark.resolved = True
    remark.resolved_by = claims["user_id"]
    remark.resolved_at = models.utcnow()
    db.add(remark)
    db.commit()
    db.refresh(remark)
    return remark


@router_v1.delete("/remarks/{remark_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_remark(
    remark_id: int,
    db: Session = Depends(get_db),
    _: Dict = Depends(admin_only),
):
    remark = (
        db.query(models.EquipmentRemark)
        .filter(models.EquipmentRemark.id == remark_id)
        .first()
    )
    if not remark:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Remark not found")
    db.delete(remark)
    db.commit()
    return


app.include_router(router_v1)
