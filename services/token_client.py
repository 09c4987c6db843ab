"""
Fungible token collaborator.

The ledger never moves funds itself; it asks a token client to transfer and
then reads balances to see what actually arrived. Real deployments plug in a
client for their token; InMemoryToken is a complete reference implementation
used for local runs and tests, including fee-on-transfer behaviour and both
failure conventions (raising vs. returning False).
"""
import logging
from typing import Dict, Mapping, Optional, Protocol, Tuple

from services.exceptions import TransferFailure

logger = logging.getLogger(__name__)

FAIL_RAISE = "raise"
FAIL_RETURN_FALSE = "return_false"
BPS_DENOMINATOR = 10_000


class TokenClient(Protocol):
     """Operations the ledger needs from a token."""

     def balance_of(self, holder: str) -> int:
          ...

     def transfer_from(self, sender: str, recipient: str, amount: int, operator: str) -> Optional[bool]:
          """Move amount from sender to recipient, spending operator's allowance."""
          ...

     def transfer(self, sender: str, recipient: str, amount: int) -> Optional[bool]:
          ...


class TokenRevert(Exception):
     """Raised by InMemoryToken when it rejects a transfer in FAIL_RAISE mode."""


class InMemoryToken:
     """
     Dictionary-backed token with allowances.

     fee_bps: basis points withheld from every transfer (burned), so the
          recipient receives amount - amount * fee_bps // 10000.
     fail_mode: FAIL_RAISE raises TokenRevert on insufficient balance or
          allowance; FAIL_RETURN_FALSE returns False and changes nothing.
     """

     def __init__(self, symbol: str = "TKN", fee_bps: int = 0, fail_mode: str = FAIL_RAISE):
          if fail_mode not in (FAIL_RAISE, FAIL_RETURN_FALSE):
               raise ValueError(f"Unknown fail_mode: {fail_mode}")
          if not 0 <= fee_bps <= BPS_DENOMINATOR:
               raise ValueError("fee_bps must be between 0 and 10000")
          self.symbol = symbol
          self.fee_bps = fee_bps
          self.fail_mode = fail_mode
          self.balances: Dict[str, int] = {}
          self.allowances: Dict[Tuple[str, str], int] = {}

     def __repr__(self):
          return f"<InMemoryToken(symbol='{self.symbol}', fee_bps={self.fee_bps})>"

     def mint(self, holder: str, amount: int) -> None:
          self.balances[holder] = self.balances.get(holder, 0) + amount

     def approve(self, holder: str, operator: str, amount: int) -> bool:
          self.allowances[(holder, operator)] = amount
          return True

     def allowance(self, holder: str, operator: str) -> int:
          return self.allowances.get((holder, operator), 0)

     def balance_of(self, holder: str) -> int:
          return self.balances.get(holder, 0)

     def transfer(self, sender: str, recipient: str, amount: int) -> bool:
          if self.balance_of(sender) < amount:
               return self._reject(f"insufficient balance for {sender}")
          self._move(sender, recipient, amount)
          return True

     def transfer_from(self, sender: str, recipient: str, amount: int, operator: str) -> bool:
          allowed = self.allowance(sender, operator)
          if allowed < amount:
               return self._reject(f"insufficient allowance: {allowed} < {amount}")
          if self.balance_of(sender) < amount:
               return self._reject(f"insufficient balance for {sender}")
          self.allowances[(sender, operator)] = allowed - amount
          self._move(sender, recipient, amount)
          return True

     def _move(self, sender: str, recipient: str, amount: int) -> None:
          fee = amount * self.fee_bps // BPS_DENOMINATOR
          self.balances[sender] = self.balance_of(sender) - amount
          self.balances[recipient] = self.balance_of(recipient) + amount - fee

     def _reject(self, reason: str) -> bool:
          if self.fail_mode == FAIL_RAISE:
               raise TokenRevert(reason)
          return False


class TokenRegistry:
     """Resolves configured token identifiers to clients."""

     def __init__(self, tokens: Optional[Mapping[str, TokenClient]] = None):
          self._tokens: Dict[str, TokenClient] = dict(tokens or {})

     def register(self, token_identifier: str, client: TokenClient) -> None:
          self._tokens[token_identifier] = client

     def resolve(self, token_identifier: str) -> TokenClient:
          client = self._tokens.get(token_identifier)
          if client is None:
               raise TransferFailure(token_identifier, None, None, "unknown token identifier")
          return client

     __call__ = resolve

     def __contains__(self, token_identifier: str) -> bool:
          return token_identifier in self._tokens


def safe_transfer_from(
     client: TokenClient,
     token_identifier: str,
     sender: str,
     recipient: str,
     amount: int,
     operator: str
) -> None:
     """
     transfer_from that treats both a raised error and a False return as failure.

     A None return counts as success (tokens that return nothing).
     """
     try:
          result = client.transfer_from(sender, recipient, amount, operator)
     except TransferFailure:
          raise
     except Exception as exc:
          raise TransferFailure(token_identifier, sender, amount, str(exc) or type(exc).__name__) from exc
     if result is False:
          raise TransferFailure(token_identifier, sender, amount, "token returned false")


def safe_transfer(
     client: TokenClient,
     token_identifier: str,
     sender: str,
     recipient: str,
     amount: int
) -> None:
     """transfer with the same failure normalisation as safe_transfer_from."""
     try:
          result = client.transfer(sender, recipient, amount)
     except TransferFailure:
          raise
     except Exception as exc:
          raise TransferFailure(token_identifier, sender, amount, str(exc) or type(exc).__name__) from exc
     if result is False:
          raise TransferFailure(token_identifier, sender, amount, "token returned false")
