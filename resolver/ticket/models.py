# resolver/ticket/models.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from resolver.core.database import Base
from resolver.reference import models as reference_models  # noqa: F401
from resolver.ticket.overdue import utcnow


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    ticket_no = Column(String, unique=True, index=True, nullable=True)
    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(String, default="medium", nullable=False)
    status = Column(String, default="open", index=True, nullable=False)
    pending_reason = Column(Text, nullable=True)

    section_id = Column(Integer, ForeignKey("sections.id"), nullable=False, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    raised_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    section_record = relationship("Section", lazy="joined")
    facility_record = relationship("Facility", lazy="joined")
    raised_by_user = relationship("User", foreign_keys=[raised_by_id], lazy="joined")
    assigned_to_user = relationship("User", foreign_keys=[assigned_to_id], lazy="joined")
    comments = relationship(
        "Comment",
        back_populates="ticket",
        order_by=lambda: [Comment.created_at, Comment.id],
        cascade="all, delete-orphan",
    )
    feedback = relationship(
        "Feedback", back_populates="ticket", uselist=False, cascade="all, delete-orphan"
    )

    # Read-only display values, as the API exposes them
    @property
    def section(self) -> str | None:
        return self.section_record.name if self.section_record else None

    @property
    def facility(self) -> str | None:
        return self.facility_record.name if self.facility_record else None

    @property
    def raised_by(self) -> str | None:
        return self.raised_by_user.username if self.raised_by_user else None

    @property
    def assigned_to(self):
        return self.assigned_to_user


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    ticket = relationship("Ticket", back_populates="comments")
    author_user = relationship("User", lazy="joined")

    @property
    def author(self) -> str:
        return self.author_user.username if self.author_user else "anonymous"


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False, unique=True, index=True)
    rated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    ticket = relationship("Ticket", back_populates="feedback")
    rated_by_user = relationship("User", lazy="joined")

    @property
    def ticket_no(self) -> str | None:
        return self.ticket.ticket_no if self.ticket else None

    @property
    def rated_by(self) -> str:
        return self.rated_by_user.username if self.rated_by_user else "anonymous"
