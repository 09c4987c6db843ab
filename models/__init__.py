from .base import Base
from .columns import TokenAmount
from .ledger_state import LedgerState
from .subscription_payment import SubscriptionPayment
from .subscriber_account import SubscriberAccount
from .payment_event import PaymentEvent

__all__ = [
     "Base",
     "TokenAmount",
     "LedgerState",
     "SubscriptionPayment",
     "SubscriberAccount",
     "PaymentEvent",
]
