from sqlalchemy import String, Integer, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from handcart.db.session import Base

class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # gateway-assigned payment id
    status: Mapped[str] = mapped_column(String(30), default="")  # lower-cased gateway status: paid, authorized, failed, ...
    mode: Mapped[str | None] = mapped_column(String(40), nullable=True)  # creditcard, applepay, stcpay, ...
    scheme: Mapped[str | None] = mapped_column(String(40), nullable=True)  # mada, visa, master, ...
    amount_halalas: Mapped[int] = mapped_column(Integer, default=0)
    currency: Mapped[str] = mapped_column(String(3), default="SAR")
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")  # gateway response snapshot, written once
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
