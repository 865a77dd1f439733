# tests/conftest.py
import asyncio
import os
from collections import Counter
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from resolver.client.api import TicketingAPI
from resolver.core.database import Base, get_db, init_db
from resolver.core.errors import NetworkError
from resolver.main import app
from resolver.reference.models import Facility, Section, User
from resolver.reference.schemas import FacilityOut, SectionOut, UserOut
from resolver.ticket.models import Ticket
from resolver.ticket.schemas import CommentOut, FeedbackOut, TicketOut, TicketPage
from resolver.ticket.status import TicketStatus

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    init_db(engine)
    app.dependency_overrides[get_db] = override_get_db
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seed(db):
    """Two sections, two facilities, an admin, two users and two technicians."""
    plumbing = Section(name="Plumbing")
    electrical = Section(name="Electrical")
    north = Facility(name="North Wing", location="Block A")
    south = Facility(name="South Wing", location="Block B")
    admin = User(username="admin", first_name="Ada", last_name="Min", role="admin")
    alice = User(username="alice", first_name="Alice", last_name="Moyo", role="user")
    bob = User(username="bob", first_name="Bob", last_name="Banda", role="user")
    tom = User(username="tom", first_name="Tom", last_name="Phiri", role="technician")
    tina = User(username="tina", first_name="Tina", last_name="Zulu", role="technician")
    db.add_all([plumbing, electrical, north, south, admin, alice, bob, tom, tina])
    db.commit()
    return SimpleNamespace(
        plumbing=plumbing, electrical=electrical, north=north, south=south,
        admin=admin, alice=alice, bob=bob, tom=tom, tina=tina,
    )


@pytest.fixture
def make_ticket(db, seed):
    """Insert a ticket straight into the store, bypassing the API."""

    def create(**kwargs):
        age = kwargs.pop("age", timedelta(0))
        created = datetime.now(timezone.utc) - age
        defaults = {
            "title": "Leaking tap in lab",
            "description": "Water is dripping from the tap all day",
            "section_id": seed.plumbing.id,
            "facility_id": seed.north.id,
            "raised_by_id": seed.alice.id,
            "status": "open",
            "created_at": created,
            "updated_at": created,
        }
        ticket = Ticket(**{**defaults, **kwargs})
        db.add(ticket)
        db.flush()
        ticket.ticket_no = f"TKT-{ticket.id:05d}"
        db.commit()
        db.refresh(ticket)
        return ticket

    return create


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
async def api(db):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield TicketingAPI(client=http)


# In-memory collaborators for the controller tests


@pytest.fixture
def ticket_factory():
    counter = {"id": 0}

    def create(**kwargs) -> TicketOut:
        counter["id"] += 1
        ticket_id = kwargs.pop("id", counter["id"])
        age = kwargs.pop("age", timedelta(0))
        created = kwargs.pop("created_at", NOW - age)
        defaults = {
            "id": ticket_id,
            "ticket_no": f"TKT-{ticket_id:05d}",
            "title": f"Broken fitting {ticket_id}",
            "description": "Needs looking at by someone",
            "status": TicketStatus.OPEN,
            "section_id": 1,
            "section": "Plumbing",
            "facility_id": 1,
            "facility": "North Wing",
            "raised_by_id": 10,
            "raised_by": "alice",
            "created_at": created,
            "updated_at": created,
        }
        return TicketOut.model_validate({**defaults, **kwargs})

    return create


class FakeTicketingAPI:
    """Stands in for ``TicketingAPI``; records calls and can hold responses."""

    def __init__(self, tickets=()):
        self.tickets = {t.id: t for t in tickets}
        self.list_calls: list[dict] = []
        self.update_calls: list[tuple[int, dict]] = []
        self.comment_calls: list[tuple[int, str, int | None]] = []
        self.feedback_calls: list[tuple[int, int, str | None, int | None]] = []
        self.deleted: list[int] = []
        self.reference_calls = Counter()
        self.hold_lists = False
        self.held: list[asyncio.Event] = []
        self.list_error: Exception | None = None
        self.update_error: Exception | None = None
        self.rewrite_reason = None
        self.sections = [SectionOut(id=1, name="Plumbing"), SectionOut(id=2, name="Electrical")]
        self.facilities = [FacilityOut(id=1, name="North Wing")]
        self.technicians = [
            UserOut(id=20, username="tom", first_name="Tom", last_name="Phiri", role="technician"),
        ]
        self.users = [
            UserOut(id=10, username="alice", first_name="Alice", last_name="Moyo"),
            *self.technicians,
        ]

    def add(self, *tickets) -> None:
        for ticket in tickets:
            self.tickets[ticket.id] = ticket

    async def list_tickets(self, descriptor):
        self.list_calls.append(dict(descriptor))
        if self.hold_lists:
            gate = asyncio.Event()
            self.held.append(gate)
            await gate.wait()
        if self.list_error is not None:
            raise self.list_error
        items = [t for t in self.tickets.values() if _matches(t, descriptor)]
        items.sort(key=lambda t: t.id, reverse=descriptor.get("ordering", "-id").startswith("-"))
        start = (descriptor.get("page", 1) - 1) * descriptor.get("page_size", 10)
        return TicketPage(count=len(items), results=items[start:start + descriptor.get("page_size", 10)])

    async def update_ticket(self, ticket_id, patch):
        self.update_calls.append((ticket_id, dict(patch)))
        if self.update_error is not None:
            raise self.update_error
        changes = dict(patch)
        if changes.get("status", "pending") != "pending":
            changes["pending_reason"] = None
        if changes.get("pending_reason") and self.rewrite_reason:
            changes["pending_reason"] = self.rewrite_reason(changes["pending_reason"])
        updated = TicketOut.model_validate({**self.tickets[ticket_id].model_dump(), **changes})
        self.tickets[ticket_id] = updated
        return updated

    async def add_comment(self, ticket_id, text, author_id=None):
        self.comment_calls.append((ticket_id, text, author_id))
        return CommentOut(id=len(self.comment_calls), author="tom", text=text, created_at=NOW)

    async def add_feedback(self, ticket_id, rating, comment=None, rated_by_id=None):
        self.feedback_calls.append((ticket_id, rating, comment, rated_by_id))
        return FeedbackOut(
            id=len(self.feedback_calls),
            ticket_id=ticket_id,
            ticket_no=self.tickets[ticket_id].ticket_no,
            rated_by="alice",
            rating=rating,
            comment=comment,
            created_at=NOW,
        )

    async def delete_ticket(self, ticket_id):
        self.deleted.append(ticket_id)
        del self.tickets[ticket_id]

    async def list_sections(self):
        return await self._reference("sections", self.sections)

    async def list_facilities(self):
        return await self._reference("facilities", self.facilities)

    async def list_technicians(self):
        return await self._reference("technicians", self.technicians)

    async def list_users(self):
        return await self._reference("users", self.users)

    async def _reference(self, kind, items):
        self.reference_calls[kind] += 1
        await asyncio.sleep(0)
        return list(items)

    def release(self, index: int) -> None:
        self.held[index].set()


def _matches(ticket, descriptor) -> bool:
    checks = {
        "status": ticket.status.value,
        "section": ticket.section_id,
        "assigned_to": ticket.assigned_to_id,
        "raised_by": ticket.raised_by_id,
    }
    for key, actual in checks.items():
        if key in descriptor and descriptor[key] != actual:
            return False
    if descriptor.get("assigned_to__isnull") and ticket.assigned_to_id is not None:
        return False
    if "search" in descriptor and descriptor["search"].lower() not in f"{ticket.ticket_no} {ticket.title}".lower():
        return False
    return True


@pytest.fixture
def fake_api():
    return FakeTicketingAPI()


@pytest.fixture
def network_down():
    return NetworkError("Could not reach the ticket service: connection refused")
