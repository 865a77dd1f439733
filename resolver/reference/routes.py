# resolver/reference/routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from resolver.core.database import get_db
from resolver.reference import services as reference_service
from resolver.reference.schemas import FacilityOut, SectionOut, UserOut
from resolver.ticket.status import Role

router = APIRouter(tags=["Reference"])


@router.get("/sections/", response_model=list[SectionOut])
def list_sections(db: Session = Depends(get_db)):
    return reference_service.get_all_sections(db)


@router.get("/facilities/", response_model=list[FacilityOut])
def list_facilities(db: Session = Depends(get_db)):
    return reference_service.get_all_facilities(db)


@router.get("/technicians/", response_model=list[UserOut])
def list_technicians(db: Session = Depends(get_db)):
    return reference_service.get_all_technicians(db)


@router.get("/users/", response_model=list[UserOut])
def list_users(
    role: Role | None = Query(default=None, description="Filter by role"),
    db: Session = Depends(get_db),
):
    return reference_service.get_all_users(db, role)
