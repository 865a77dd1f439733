# resolver/reference/services.py
from sqlalchemy.orm import Session
from resolver.reference.models import Facility, Section, User
from resolver.ticket.status import Role


def get_all_sections(db: Session) -> list[Section]:
    return db.query(Section).order_by(Section.name).all()


def get_all_facilities(db: Session) -> list[Facility]:
    return db.query(Facility).order_by(Facility.name).all()


def get_all_users(db: Session, role: Role | None = None) -> list[User]:
    query = db.query(User).filter(User.is_active.is_(True))
    if role is not None:
        query = query.filter(User.role == role.value)
    return query.order_by(User.id).all()


def get_all_technicians(db: Session) -> list[User]:
    return get_all_users(db, Role.TECHNICIAN)


def get_user(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()
