from .subscription import (
     LedgerStateResponse,
     PaymentCreate,
     PaymentResponse,
     PaymentListResponse,
     PaymentEventResponse,
     SubscriberResponse,
     FeeUpdate,
     TokenUpdate,
     FeeCollectorUpdate,
     OwnerUpdate,
     WithdrawResponse,
     BalanceResponse,
)

__all__ = [
     "LedgerStateResponse",
     "PaymentCreate",
     "PaymentResponse",
     "PaymentListResponse",
     "PaymentEventResponse",
     "SubscriberResponse",
     "FeeUpdate",
     "TokenUpdate",
     "FeeCollectorUpdate",
     "OwnerUpdate",
     "WithdrawResponse",
     "BalanceResponse",
]
