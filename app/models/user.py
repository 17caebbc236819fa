from sqlalchemy import String, DateTime, Boolean, BigInteger, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base, BigIntId

class User(Base):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    auth_subject: Mapped[str] = mapped_column(String(64), unique=True, index=True)  # identity provider "sub"
    email: Mapped[str] = mapped_column(String(320), default="")
    role: Mapped[str] = mapped_column(String(30), default="operator_staff")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    active_operator_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("dive_operators.operator_id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class UserOperatorAffiliation(Base):
    __tablename__ = "user_operator_affiliations"

    affiliation_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.user_id"), index=True)
    operator_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("dive_operators.operator_id"), index=True)
    affiliation_type: Mapped[str] = mapped_column(String(30), default="staff")  # owner, staff
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
