from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_booking_created", "booking_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False)
    content: Mapped[str] = mapped_column(String(1000), nullable=False)
    # Assigned in Python for sub-second resolution on SQLite.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    booking = relationship("Booking")
    sender = relationship("Profile")
