# resolver/reference/schemas.py
from pydantic import BaseModel

from resolver.ticket.status import Role


class SectionOut(BaseModel):
    id: int
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}


class FacilityOut(BaseModel):
    id: int
    name: str
    location: str | None = None

    model_config = {"from_attributes": True}


class UserOut(BaseModel):
    id: int
    username: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    role: Role = Role.USER

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.username
