"""
PaymentEvent model - outbox of payment notifications.

Written in the same transaction as the payment it describes, so an event exists
exactly once per committed payment. nominal_fee is the intended price, which can
differ from the amount the ledger actually received.
"""
from sqlalchemy import BigInteger, Column, Integer, String, ForeignKey

from .base import Base
from .columns import TokenAmount


class PaymentEvent(Base):
     __tablename__ = "payment_events"

     id = Column(Integer, primary_key=True, autoincrement=True)
     ledger_id = Column(
          Integer,
          ForeignKey("ledger_states.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     payment_id = Column(
          Integer,
          ForeignKey("subscription_payments.id", ondelete="RESTRICT"),
          nullable=False,
          unique=True
     )
     payer = Column(String(128), nullable=False)
     nominal_fee = Column(TokenAmount(), nullable=False)
     period_count = Column(Integer, nullable=False)
     emitted_at = Column(BigInteger, nullable=False)

     def __repr__(self):
          return (
               f"<PaymentEvent(id={self.id}, payer='{self.payer}', "
               f"nominal_fee={self.nominal_fee}, period_count={self.period_count})>"
          )
