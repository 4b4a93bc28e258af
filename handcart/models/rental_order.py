from sqlalchemy import String, Integer, Float, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from handcart.db.session import Base
from handcart.models.payment import Payment

# pending_payment -> unlocking -> {in_use, unlock_failed} -> returned; pending_payment -> canceled
PENDING_PAYMENT = "pending_payment"
UNLOCKING = "unlocking"
IN_USE = "in_use"
UNLOCK_FAILED = "unlock_failed"
RETURNED = "returned"
CANCELED = "canceled"

class RentalOrder(Base):
    __tablename__ = "rental_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    status: Mapped[str] = mapped_column(String(20), default=PENDING_PAYMENT, index=True)

    merchant_no: Mapped[str] = mapped_column(String(64), index=True)
    site_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    device_no: Mapped[str] = mapped_column(String(64), index=True)
    cart_no: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)  # vendor may report by index only
    cart_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    return_device_no: Mapped[str | None] = mapped_column(String(64), nullable=True)

    amount_halalas: Mapped[int] = mapped_column(Integer, default=0)
    electricity: Mapped[float | None] = mapped_column(Float, nullable=True)  # battery reading at return

    payment_id: Mapped[str | None] = mapped_column(ForeignKey("payments.id"), unique=True, nullable=True)
    payment: Mapped[Payment | None] = relationship(lazy="joined")

    unlock_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unlock_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    returned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
