from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint, Enum, func
import enum

from app.platform.db.base import Base, utcnow


class CreditPlan(enum.Enum):
    free = "FREE"
    pro = "PRO"
    enterprise = "ENTERPRISE"


class UserCredit(Base):
    """
    Remaining scan allowance for one user.

    Keyed by the identity provider's user id; the balance is only ever
    decremented through CreditLedger.try_reserve.
    """
    __tablename__ = "user_credits"

    user_id = Column(String(255), primary_key=True)
    balance = Column(Integer, nullable=False, default=0)
    plan = Column(Enum(CreditPlan), nullable=False, default=CreditPlan.free)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="check_user_credits_non_negative"),
    )
