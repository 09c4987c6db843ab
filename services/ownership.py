"""
Owner authorization for ledger configuration and withdrawals.
"""
from typing import Protocol

from models import LedgerState
from services.exceptions import AuthorizationError


class Authorizer(Protocol):
     def is_owner(self, state: LedgerState, caller: str) -> bool:
          ...


class StoredOwnerAuthorizer:
     """The owner is whoever LedgerState.owner currently names."""

     def is_owner(self, state: LedgerState, caller: str) -> bool:
          return bool(caller) and state.owner == caller


def require_owner(authorizer: Authorizer, state: LedgerState, caller: str, action: str) -> None:
     """Raise AuthorizationError unless caller owns the ledger."""
     if not authorizer.is_owner(state, caller):
          raise AuthorizationError(caller, action)
