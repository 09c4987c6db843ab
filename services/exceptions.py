"""
Errors raised by the subscription ledger service layer.

Routers translate these into HTTP responses; nothing in the service layer
retries on failure.
"""
from typing import Optional


class LedgerError(Exception):
     """Base class for ledger failures."""


class LedgerNotFound(LedgerError):
     def __init__(self, ledger_id: int):
          self.ledger_id = ledger_id
          super().__init__(f"Ledger with ID {ledger_id} not found")


class LedgerNotConfigured(LedgerError):
     """Fee or token has not been set by the owner yet."""

     def __init__(self, ledger_id: int, missing: list[str]):
          self.ledger_id = ledger_id
          self.missing = missing
          super().__init__(f"Ledger {ledger_id} is not configured: missing {', '.join(missing)}")


class AuthorizationError(LedgerError):
     """Caller is not the ledger owner."""

     def __init__(self, caller: str, action: str):
          self.caller = caller
          self.action = action
          super().__init__(f"Caller '{caller}' is not allowed to {action}")


class TransferFailure(LedgerError):
     """
     The token collaborator rejected a transfer (reverted, returned false,
     or the configured token identifier could not be resolved).
     """

     def __init__(
          self,
          token_identifier: Optional[str],
          sender: Optional[str],
          amount: Optional[int],
          reason: str
     ):
          self.token_identifier = token_identifier
          self.sender = sender
          self.amount = amount
          self.reason = reason
          super().__init__(f"Transfer of {amount} {token_identifier} from '{sender}' failed: {reason}")


class SubscriptionExpired(LedgerError):
     """Raised by access-gated operations when the caller's subscription is not active."""

     def __init__(self, subscriber: str, expires_at: int):
          self.subscriber = subscriber
          self.expires_at = expires_at
          if expires_at:
               message = f"Subscription for '{subscriber}' expired at {expires_at}"
          else:
               message = f"'{subscriber}' has no subscription"
          super().__init__(message)


class InvalidPeriodCount(LedgerError, ValueError):
     def __init__(self, period_count):
          self.period_count = period_count
          super().__init__(f"period_count must be a positive integer, got {period_count!r}")


class CustodyAccountInUse(LedgerError):
     """Another ledger already holds its funds under this custody account."""

     def __init__(self, custody_account: str):
          self.custody_account = custody_account
          super().__init__(f"Custody account '{custody_account}' already belongs to another ledger")
