# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Services catalog.  Reading is public (the marketing pages render from it);
creating, editing and deleting entries requires an admin session.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from core.activity import log_activity
from core.security import require_admin
from auth.schemas import Identity, MessageResponse
from models.service import Service
from catalog.schemas import (
    ServiceCreate,
    ServiceCreatedResponse,
    ServiceListResponse,
    ServiceResponse,
    ServiceUpdate,
)

router = APIRouter(prefix="/api/services", tags=["catalog"])


def _get_service_or_404(db: Session, service_id: int) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


@router.get("", response_model=ServiceListResponse)
def list_services(db: Session = Depends(get_db)):
    services = db.query(Service).order_by(Service.created_at.desc(), Service.id.desc()).all()
    return ServiceListResponse(services=services)


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(service_id: int, db: Session = Depends(get_db)):
    return ServiceResponse(service=_get_service_or_404(db, service_id))


@router.post("", response_model=ServiceCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    body: ServiceCreate,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = Service(**body.model_dump(), is_active=True)
    db.add(service)
    db.flush()
    log_activity(db, admin.id, admin.name, "create_service", f"Created service: {body.name}", request)
    db.commit()
    return ServiceCreatedResponse(message="Service created successfully", service_id=service.id)


@router.put("/{service_id}", response_model=MessageResponse)
def update_service(
    service_id: int,
    body: ServiceUpdate,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _get_service_or_404(db, service_id)
    for field, value in body.model_dump().items():
        setattr(service, field, value)
    log_activity(db, admin.id, admin.name, "update_service", f"Updated service: {service_id}", request)
    db.commit()
    return MessageResponse(message="Service updated successfully")


@router.delete("/{service_id}", response_model=MessageResponse)
def delete_service(
    service_id: int,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _get_service_or_404(db, service_id)
    db.delete(service)
    log_activity(db, admin.id, admin.name, "delete_service", f"Deleted service: {service_id}", request)
    db.commit()
    return MessageResponse(message="Service deleted successfully")
