"""
Module: admissions_kernel.models.program
Responsibility: ORM persistence for admission sessions (academic intakes)
    and the programs applicants apply to.  These rows are maintained by the
    excluded catalogue screens; the engines only read them, chiefly to
    snapshot fee inputs and application windows.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import TrackedBase
from admissions_kernel.db.types import status_column
from admissions_kernel.domain.lifecycle import AdmissionSessionStatus


class AdmissionSession(TrackedBase):
    """
    One academic intake (e.g. "2024/2025").

    Fee columns are the session-wide defaults; NULL falls back to the
    configured defaults.
    """

    __tablename__ = "admission_sessions"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    academic_year: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    status: Mapped[AdmissionSessionStatus] = mapped_column(
        status_column(AdmissionSessionStatus),
        nullable=False,
        default=AdmissionSessionStatus.ACTIVE,
    )

    form_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    acceptance_fee: Mapped[Decimal | None] = mapped_column(nullable=True)
    admission_fee: Mapped[Decimal | None] = mapped_column(nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == AdmissionSessionStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<AdmissionSession {self.academic_year} ({self.status.value})>"


class Program(TrackedBase):
    """
    A program of study.

    ``use_default_form_fee`` selects between ``form_fee`` and the session
    form price.  ``acceptance_fee`` NULL means the session default.  Either
    application-window bound may be NULL (open-ended).
    """

    __tablename__ = "programs"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    form_fee: Mapped[Decimal | None] = mapped_column(nullable=True)

    use_default_form_fee: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    acceptance_fee: Mapped[Decimal | None] = mapped_column(nullable=True)

    application_opens_at: Mapped[datetime | None] = mapped_column(nullable=True)
    application_closes_at: Mapped[datetime | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Program {self.code}>"
