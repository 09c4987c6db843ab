from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base
from .columns import TokenAmount


class SubscriberAccount(Base):
     """
     Per-subscriber view of a ledger: the most recent payment (overwritten on
     every payment) and the cumulative amount actually received from them.
     """
     __tablename__ = "subscriber_accounts"

     ledger_id = Column(
          Integer,
          ForeignKey("ledger_states.id", ondelete="RESTRICT"),
          primary_key=True
     )
     subscriber = Column(String(128), primary_key=True)
     latest_payment_id = Column(
          Integer,
          ForeignKey("subscription_payments.id", ondelete="RESTRICT"),
          nullable=False
     )
     total_paid = Column(TokenAmount(), nullable=False, default=0)

     # Relationships
     latest_payment = relationship("SubscriptionPayment", lazy="joined")

     def __repr__(self):
          return (
               f"<SubscriberAccount(ledger_id={self.ledger_id}, subscriber='{self.subscriber}', "
               f"total_paid={self.total_paid})>"
          )
