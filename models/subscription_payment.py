"""
SubscriptionPayment model - append-only history of completed payments.

Insertion order (id) is chronological order. Rows are never updated or deleted.
"""
from sqlalchemy import BigInteger, CheckConstraint, Column, Integer, String, ForeignKey

from .base import Base
from .columns import TokenAmount


class SubscriptionPayment(Base):
     """
     One completed payment. expires_at = paid_at + period_count * 30 days,
     all timestamps in epoch seconds.
     """
     __tablename__ = "subscription_payments"
     __table_args__ = (
          CheckConstraint("period_count >= 1", name="period_count_positive"),
          CheckConstraint("expires_at > paid_at", name="expiry_after_payment"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     ledger_id = Column(
          Integer,
          ForeignKey("ledger_states.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     payer = Column(String(128), nullable=False, index=True)
     paid_at = Column(BigInteger, nullable=False)
     expires_at = Column(BigInteger, nullable=False)
     period_count = Column(Integer, nullable=False)
     nominal_fee = Column(TokenAmount(), nullable=False)  # period_count * fee at payment time
     amount_received = Column(TokenAmount(), nullable=False)  # observed balance delta
     token_identifier = Column(String(128), nullable=False)

     def __repr__(self):
          return (
               f"<SubscriptionPayment(id={self.id}, payer='{self.payer}', "
               f"paid_at={self.paid_at}, expires_at={self.expires_at})>"
          )

     def is_active_at(self, moment: int) -> bool:
          """Expiry is exclusive: at moment == expires_at the period is over."""
          return moment < self.expires_at
