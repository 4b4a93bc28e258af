from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from handcart.db.session import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    actor: Mapped[str] = mapped_column(String(64), index=True)  # vendor, moyasar, system, operator subject
    action: Mapped[str] = mapped_column(String(80), index=True)  # e.g. order.returned, return.unmatched
    entity_type: Mapped[str] = mapped_column(String(40), index=True)  # payment, rental_order, handcart
    entity_id: Mapped[str] = mapped_column(String(64), index=True)
    details_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
