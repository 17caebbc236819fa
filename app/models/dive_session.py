from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Numeric, BigInteger, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base, BigIntId

class Vessel(Base):
    __tablename__ = "vessels"

    vessel_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    operator_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("dive_operators.operator_id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    max_capacity: Mapped[int] = mapped_column(Integer)


class DiveSession(Base):
    __tablename__ = "dive_sessions"

    session_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    operator_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("dive_operators.operator_id"), index=True)
    dive_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    site_name: Mapped[str] = mapped_column(String(200), default="")
    # NULL vessel => shore dive, unlimited capacity
    vessel_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("vessels.vessel_id"), nullable=True)

    price_per_diver: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)  # major units
    session_currency: Mapped[str] = mapped_column(String(3))  # always the operator's ledger currency

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)  # soft cancel, permanent
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
