from .exceptions import (
     LedgerError,
     LedgerNotFound,
     LedgerNotConfigured,
     CustodyAccountInUse,
     AuthorizationError,
     TransferFailure,
     SubscriptionExpired,
     InvalidPeriodCount,
)
from .ownership import Authorizer, StoredOwnerAuthorizer, require_owner
from .token_client import (
     TokenClient,
     TokenRegistry,
     InMemoryToken,
     TokenRevert,
     safe_transfer,
     safe_transfer_from,
)
from .subscription_ledger import (
     SubscriptionLedger,
     create_ledger,
     compute_expiry,
     system_clock,
     SECONDS_PER_PERIOD,
)

__all__ = [
     "LedgerError",
     "LedgerNotFound",
     "LedgerNotConfigured",
     "CustodyAccountInUse",
     "AuthorizationError",
     "TransferFailure",
     "SubscriptionExpired",
     "InvalidPeriodCount",
     "Authorizer",
     "StoredOwnerAuthorizer",
     "require_owner",
     "TokenClient",
     "TokenRegistry",
     "InMemoryToken",
     "TokenRevert",
     "safe_transfer",
     "safe_transfer_from",
     "SubscriptionLedger",
     "create_ledger",
     "compute_expiry",
     "system_clock",
     "SECONDS_PER_PERIOD",
]
