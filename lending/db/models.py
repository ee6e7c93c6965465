import enum
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from lending.core.errors import ConflictError, ConflictReason, InvalidStateError


class Base(DeclarativeBase):
    pass


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ──────────────────────────── Enums ────────────────────────────


class UserRole(str, enum.Enum):
    MEMBER = "member"
    LIBRARIAN = "librarian"
    ADMIN = "admin"


class ReservationStatus(str, enum.Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    FULFILLED = "fulfilled"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


OPEN_RESERVATION_STATUSES = (ReservationStatus.WAITING, ReservationStatus.ACTIVE)


# ──────────────────────────── Models ────────────────────────────


class User(Base):
    """An account: staff members log in with it, borrowers present its password."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"), nullable=False, default=UserRole.MEMBER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_built_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )


class Borrower(Base):
    __tablename__ = "borrowers"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("users.id"), unique=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )


class Item(Base):
    __tablename__ = "items"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    total_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("total_copies >= 0", name="ck_items_total_copies_positive"),
        CheckConstraint("available_copies >= 0", name="ck_items_available_copies_positive"),
        CheckConstraint("available_copies <= total_copies", name="ck_items_available_lte_total"),
    )

    def check_out_copy(self) -> None:
        if self.available_copies <= 0:
            raise ConflictError(
                ConflictReason.ITEM_UNAVAILABLE, "No copies of this item are available"
            )
        self.available_copies -= 1

    def check_in_copy(self) -> None:
        if self.available_copies >= self.total_copies:
            raise InvalidStateError(
                f"Item {self.id} has every copy on the shelf; nothing to check in"
            )
        self.available_copies += 1


class Loan(Base):
    __tablename__ = "loans"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    borrower_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("borrowers.id"), nullable=False
    )
    item_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("items.id"), nullable=False
    )
    reservation_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("reservations.id"), nullable=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    return_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    returned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    renewal_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )

    __table_args__ = (
        Index("ix_loans_item_returned", "item_id", "returned"),
        Index("ix_loans_borrower_returned", "borrower_id", "returned"),
    )

    def mark_returned(self, on: date) -> None:
        self.return_date = on
        self.returned = True


class Reservation(Base):
    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    item_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("items.id"), nullable=False
    )
    borrower_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("borrowers.id"), nullable=False
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status"), nullable=False, index=True
    )
    active_deadline: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # Loan that fulfilled this reservation; resolved through the repository.
    loan_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), nullable=True)

    __table_args__ = (
        Index("ix_reservations_item_status", "item_id", "status"),
        Index("ix_reservations_borrower_status", "borrower_id", "status"),
    )

    def _require(self, *allowed: Optional[ReservationStatus]) -> None:
        if self.status not in allowed:
            current = self.status.value if self.status else "unset"
            raise InvalidStateError(f"Reservation {self.id} cannot leave status '{current}' this way")

    def activate(self, today: date, grace_days: int) -> None:
        self._require(None, ReservationStatus.WAITING)
        self.status = ReservationStatus.ACTIVE
        self.active_deadline = today + timedelta(days=grace_days)

    def mark_waiting(self) -> None:
        self._require(None)
        self.status = ReservationStatus.WAITING

    def fulfill(self) -> None:
        self._require(ReservationStatus.ACTIVE)
        self.status = ReservationStatus.FULFILLED

    def is_past_deadline(self, cutoff: date) -> bool:
        """True while the reservation is still ACTIVE with a deadline before ``cutoff``."""
        return (
            self.status == ReservationStatus.ACTIVE
            and self.active_deadline is not None
            and self.active_deadline < cutoff
        )

    def expire(self) -> None:
        self._require(ReservationStatus.ACTIVE)
        self.status = ReservationStatus.EXPIRED

    def cancel(self) -> None:
        self._require(*OPEN_RESERVATION_STATUSES)
        self.status = ReservationStatus.CANCELLED


class BlacklistedToken(Base):
    __tablename__ = "blacklisted_tokens"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    jti: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )
