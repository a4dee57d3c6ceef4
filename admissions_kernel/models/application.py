"""
Module: admissions_kernel.models.application
Responsibility: ORM persistence for applications and their academic
    background records.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - One application per (applicant, admission session):
      UNIQUE(applicant_id, admission_session_id).
    - Globally unique application_number: UNIQUE(application_number).
    - status is a closed ApplicationStatus value; other strings are
      rejected at bind time.

Failure modes:
    - IntegrityError on a second application for the same session, or on
      an application-number collision (translated by LifecycleService).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from admissions_kernel.db.base import Base, TrackedBase, UUIDString
from admissions_kernel.db.types import status_column
from admissions_kernel.domain.lifecycle import (
    BACKGROUND_FIELDS,
    EDITABLE_APPLICATION_FIELDS,
    ApplicationStatus,
)
from admissions_kernel.models.program import AdmissionSession, Program


class Application(TrackedBase):
    """
    An applicant's application to one program in one admission session.

    Owned by the applicant.  Editable by the applicant only while ``draft``;
    status is moved by LifecycleService and the payment flags
    (``form_paid``, ``admission_fee_paid``) only by ReconciliationService.
    """

    __tablename__ = "applications"

    __table_args__ = (
        UniqueConstraint(
            "applicant_id",
            "admission_session_id",
            name="uq_application_applicant_session",
        ),
        Index("idx_application_status", "status"),
        Index("idx_application_session", "admission_session_id", "status"),
    )

    applicant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    admission_session_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("admission_sessions.id"),
        nullable=False,
    )

    program_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("programs.id"),
        nullable=False,
    )

    application_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
    )

    status: Mapped[ApplicationStatus] = mapped_column(
        status_column(ApplicationStatus),
        nullable=False,
        default=ApplicationStatus.DRAFT,
    )

    form_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    admission_fee_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Identity
    first_name: Mapped[str | None] = mapped_column(String(100))
    middle_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    gender: Mapped[str | None] = mapped_column(String(10))
    nationality: Mapped[str | None] = mapped_column(String(100))
    state_of_origin: Mapped[str | None] = mapped_column(String(100))
    local_government: Mapped[str | None] = mapped_column(String(100))
    address: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(String(30))
    email: Mapped[str | None] = mapped_column(String(255))
    emergency_contact_name: Mapped[str | None] = mapped_column(String(200))
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(30))
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(50))

    # Entrance examination
    jamb_registration_number: Mapped[str | None] = mapped_column(String(30))
    jamb_score: Mapped[int | None] = mapped_column(Integer)
    jamb_year: Mapped[int | None] = mapped_column(Integer)
    is_first_choice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Review
    admin_notes: Mapped[str | None] = mapped_column(Text)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    academic_backgrounds: Mapped[list[AcademicBackground]] = relationship(
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="AcademicBackground.position",
    )

    program: Mapped[Program] = relationship(lazy="joined")
    admission_session: Mapped[AdmissionSession] = relationship(lazy="joined")

    def identity_fields(self) -> dict[str, Any]:
        """Current values of every applicant-editable field."""
        return {name: getattr(self, name) for name in EDITABLE_APPLICATION_FIELDS}

    def background_records(self) -> list[dict[str, Any]]:
        return [record.as_dict() for record in self.academic_backgrounds]

    def __repr__(self) -> str:
        return f"<Application {self.application_number} ({self.status.value})>"


class AcademicBackground(Base):
    """One prior-qualification record of an application."""

    __tablename__ = "academic_backgrounds"

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    school_name: Mapped[str | None] = mapped_column(String(255))
    qualification: Mapped[str | None] = mapped_column(String(100))
    graduation_year: Mapped[int | None] = mapped_column(Integer)
    cgpa: Mapped[Decimal | None] = mapped_column(nullable=True)

    application: Mapped[Application] = relationship(back_populates="academic_backgrounds")

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in BACKGROUND_FIELDS}
