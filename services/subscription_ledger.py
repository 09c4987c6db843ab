"""
Subscription Ledger Service - token-funded recurring subscriptions.

When a subscriber pays for N periods:
1. Charge N * fee through the token's transfer_from into the ledger's custody account
2. Measure the custody balance before and after; the observed delta is what gets counted
3. Append an immutable payment record expiring N * 30 days after the payment moment
4. Overwrite the subscriber's latest payment, bump the running totals, write a payment event

All of it happens in one database transaction under a per-ledger lock. A failed
transfer leaves the ledger untouched; a failure to persist after a successful
transfer refunds what was received.

Access checks are derived at read time: a subscription is active while
now < expires_at of the subscriber's latest payment.
"""
import logging
import threading
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Dict, Generator, List, Optional

from sqlalchemy.orm import Session, sessionmaker

import config
from database import session_scope
from models import LedgerState, PaymentEvent, SubscriberAccount, SubscriptionPayment
from services.exceptions import (
     CustodyAccountInUse,
     InvalidPeriodCount,
     LedgerNotConfigured,
     LedgerNotFound,
     SubscriptionExpired,
     TransferFailure,
)
from services.ownership import Authorizer, StoredOwnerAuthorizer, require_owner
from services.token_client import TokenClient, safe_transfer, safe_transfer_from

logger = logging.getLogger(__name__)

# Fixed 30-day billing period
SECONDS_PER_PERIOD = 30 * 24 * 60 * 60

TokenResolver = Callable[[str], TokenClient]
Clock = Callable[[], int]
PaymentListener = Callable[[PaymentEvent], None]

# One writer lock per ledger id, shared by every SubscriptionLedger in the process
_ledger_locks: Dict[int, threading.RLock] = defaultdict(threading.RLock)
_ledger_locks_guard = threading.Lock()


def _lock_for(ledger_id: int) -> threading.RLock:
     with _ledger_locks_guard:
          return _ledger_locks[ledger_id]


def system_clock() -> int:
     """Current time in whole epoch seconds."""
     return int(time.time())


def compute_expiry(paid_at: int, period_count: int) -> int:
     return paid_at + period_count * SECONDS_PER_PERIOD


def _validate_period_count(period_count) -> None:
     if isinstance(period_count, bool) or not isinstance(period_count, int) or period_count < 1:
          raise InvalidPeriodCount(period_count)


def _validate_amount(amount, name: str) -> None:
     if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
          raise ValueError(f"{name} must be a non-negative integer, got {amount!r}")


def _validate_identity(value, name: str) -> None:
     if not isinstance(value, str) or not value:
          raise ValueError(f"{name} must be a non-empty string")


def _ensure_custody_unused(db: Session, custody_account: str) -> None:
     taken = (
          db.query(LedgerState.id)
          .filter(LedgerState.custody_account == custody_account)
          .first()
     )
     if taken is not None:
          raise CustodyAccountInUse(custody_account)


def create_ledger(db: Session, owner: str, custody_account: Optional[str] = None) -> LedgerState:
     """
     Create a ledger owned by `owner`, who is also the initial fee collector.

     Fee and token are left unset; payments are rejected until both are configured.
     Without an explicit custody account, one is derived from the new ledger id.
     A custody account is never shared: withdraw drains whatever it holds.

     Raises:
          CustodyAccountInUse: another ledger already uses the custody account
     """
     _validate_identity(owner, "owner")
     if custody_account:
          _ensure_custody_unused(db, custody_account)
     state = LedgerState(
          owner=owner,
          fee_collector=owner,
          custody_account=custody_account or f"{config.LEDGER_CUSTODY_PREFIX}pending-{uuid.uuid4().hex}",
          total_collected=0,
     )
     db.add(state)
     db.flush()  # Flush to get the ID without committing
     if not custody_account:
          derived = f"{config.LEDGER_CUSTODY_PREFIX}{state.id}"
          _ensure_custody_unused(db, derived)
          state.custody_account = derived
          db.flush()
     logger.info(f"Created ledger {state.id} owned by {owner} (custody={state.custody_account})")
     return state


class SubscriptionLedger:
     """
     Operations on one ledger, addressed by id.

     Instances hold no ledger state of their own; everything lives in the
     ledger_states row and its payment tables, so several instances over the
     same database see the same ledger.
     """

     def __init__(
          self,
          session_factory: sessionmaker,
          ledger_id: int,
          token_resolver: TokenResolver,
          authorizer: Optional[Authorizer] = None,
          clock: Optional[Clock] = None
     ):
          self.ledger_id = ledger_id
          self._session_factory = session_factory
          self._resolve_token = token_resolver
          self._authorizer = authorizer or StoredOwnerAuthorizer()
          self._clock = clock or system_clock
          self._listeners: List[PaymentListener] = []

     # ------------------------------------------------------------------
     # Plumbing
     # ------------------------------------------------------------------

     @contextmanager
     def _transaction(self) -> Generator[Session, None, None]:
          """Exclusive unit of work: per-ledger lock plus a database transaction."""
          with _lock_for(self.ledger_id):
               with session_scope(self._session_factory) as db:
                    yield db

     @contextmanager
     def _read(self) -> Generator[Session, None, None]:
          with session_scope(self._session_factory) as db:
               yield db

     def _load_state(self, db: Session, for_update: bool = False) -> LedgerState:
          query = db.query(LedgerState).filter(LedgerState.id == self.ledger_id)
          if for_update:
               query = query.with_for_update()
          state = query.first()
          if state is None:
               raise LedgerNotFound(self.ledger_id)
          return state

     def _require_token(self, state: LedgerState) -> TokenClient:
          if state.token_identifier is None:
               raise LedgerNotConfigured(self.ledger_id, ["token"])
          return self._resolve_token(state.token_identifier)

     def _account(self, db: Session, subscriber: str) -> Optional[SubscriberAccount]:
          return (
               db.query(SubscriberAccount)
               .filter(
                    SubscriberAccount.ledger_id == self.ledger_id,
                    SubscriberAccount.subscriber == subscriber
               )
               .first()
          )

     def subscribe(self, listener: PaymentListener) -> PaymentListener:
          """Call `listener` with every payment event committed through this instance."""
          self._listeners.append(listener)
          return listener

     def _notify(self, event: PaymentEvent) -> None:
          for listener in self._listeners:
               try:
                    listener(event)
               except Exception:
                    # The payment is already committed; a broken listener must not hide that
                    logger.exception(f"Payment listener {listener!r} failed for event {event.id}")

     # ------------------------------------------------------------------
     # Payments
     # ------------------------------------------------------------------

     def record_payment(self, caller: str, period_count: int) -> SubscriptionPayment:
          """
          Charge `caller` for `period_count` periods and extend their subscription.

          The new period starts now, not at the end of any period still running.

          Raises:
               InvalidPeriodCount: period_count is not an integer >= 1
               LedgerNotConfigured: fee or token has not been set
               TransferFailure: the token rejected the charge (nothing is recorded)
          """
          _validate_period_count(period_count)
          _validate_identity(caller, "caller")

          received_from = None  # (client, token_identifier, custody, delta) once funds moved
          try:
               with self._transaction() as db:
                    state = self._load_state(db, for_update=True)
                    if not state.is_configured:
                         raise LedgerNotConfigured(self.ledger_id, state.missing_settings)

                    token_identifier = state.token_identifier
                    client = self._resolve_token(token_identifier)
                    custody = state.custody_account
                    nominal_fee = period_count * state.fee_amount

                    balance_before = client.balance_of(custody)
                    safe_transfer_from(client, token_identifier, caller, custody, nominal_fee, operator=custody)
                    received = client.balance_of(custody) - balance_before
                    received_from = (client, token_identifier, custody, received)

                    if received != nominal_fee:
                         logger.warning(
                              f"Ledger {self.ledger_id}: requested {nominal_fee} {token_identifier} "
                              f"from {caller}, received {received}"
                         )

                    now = self._clock()
                    payment = SubscriptionPayment(
                         ledger_id=self.ledger_id,
                         payer=caller,
                         paid_at=now,
                         expires_at=compute_expiry(now, period_count),
                         period_count=period_count,
                         nominal_fee=nominal_fee,
                         amount_received=received,
                         token_identifier=token_identifier,
                    )
                    db.add(payment)
                    db.flush()

                    account = self._account(db, caller)
                    if account is None:
                         account = SubscriberAccount(
                              ledger_id=self.ledger_id,
                              subscriber=caller,
                              total_paid=0,
                         )
                         db.add(account)
                    account.latest_payment_id = payment.id
                    account.latest_payment = payment
                    account.total_paid = account.total_paid + received
                    state.total_collected = state.total_collected + received

                    event = PaymentEvent(
                         ledger_id=self.ledger_id,
                         payment_id=payment.id,
                         payer=caller,
                         nominal_fee=nominal_fee,
                         period_count=period_count,
                         emitted_at=now,
                    )
                    db.add(event)
                    db.flush()
          except Exception:
               if received_from is not None:
                    self._refund(caller, *received_from)
               raise

          logger.info(
               f"Ledger {self.ledger_id}: {caller} paid {nominal_fee} for {period_count} "
               f"period(s), active until {payment.expires_at}"
          )
          self._notify(event)
          return payment

     def _refund(self, caller: str, client: TokenClient, token_identifier: str, custody: str, amount: int) -> None:
          """Return funds taken by a payment whose records could not be committed."""
          if amount <= 0:
               return
          try:
               safe_transfer(client, token_identifier, custody, caller, amount)
          except TransferFailure:
               logger.critical(
                    f"Ledger {self.ledger_id}: payment by {caller} rolled back but refund of "
                    f"{amount} {token_identifier} failed; manual reconciliation required"
               )
               return
          logger.error(f"Ledger {self.ledger_id}: payment by {caller} rolled back, refunded {amount}")

     # ------------------------------------------------------------------
     # Access guard
     # ------------------------------------------------------------------

     def is_subscription_active(self, subscriber: str) -> bool:
          payment = self.latest_payment(subscriber)
          return payment is not None and payment.is_active_at(self._clock())

     def require_active_subscription(self, subscriber: str) -> SubscriptionPayment:
          """
          Precondition for gated operations built on top of the ledger.

          Returns the subscriber's latest payment, or raises SubscriptionExpired
          when there is none or it expired (now >= expires_at).
          """
          payment = self.latest_payment(subscriber)
          if payment is None:
               raise SubscriptionExpired(subscriber, 0)
          if not payment.is_active_at(self._clock()):
               raise SubscriptionExpired(subscriber, payment.expires_at)
          return payment

     # ------------------------------------------------------------------
     # Owner-only configuration
     # ------------------------------------------------------------------

     def _configure(self, caller: str, action: str, check: Callable[[], None], **changes) -> LedgerState:
          """Apply owner-only changes. The owner check runs before `check` validates the arguments."""
          with self._transaction() as db:
               state = self._load_state(db, for_update=True)
               require_owner(self._authorizer, state, caller, action)
               check()
               for field, value in changes.items():
                    setattr(state, field, value)
               logger.info(f"Ledger {self.ledger_id}: {caller} {action} -> {changes}")
               return state

     def set_fee(self, caller: str, new_fee: int) -> LedgerState:
          """Price per period for future payments. Zero and unbounded values are allowed."""
          return self._configure(
               caller, "set fee", lambda: _validate_amount(new_fee, "fee"), fee_amount=new_fee
          )

     def set_token(self, caller: str, new_token_identifier: str) -> LedgerState:
          """
          Switch the accepted token. The identifier is not checked here; a bad one
          surfaces as TransferFailure on the next payment or withdrawal.
          total_collected keeps counting across tokens.
          """
          return self._configure(
               caller,
               "set token",
               lambda: _validate_identity(new_token_identifier, "token identifier"),
               token_identifier=new_token_identifier,
          )

     def set_fee_collector(self, caller: str, new_collector: str) -> LedgerState:
          return self._configure(
               caller,
               "set fee collector",
               lambda: _validate_identity(new_collector, "fee collector"),
               fee_collector=new_collector,
          )

     def transfer_ownership(self, caller: str, new_owner: str) -> LedgerState:
          return self._configure(
               caller,
               "transfer ownership",
               lambda: _validate_identity(new_owner, "new owner"),
               owner=new_owner,
          )

     def withdraw(self, caller: str) -> int:
          """
          Send the custody account's entire balance of the configured token to the caller.

          The destination is the calling owner; fee_collector is not consulted.
          Returns the amount sent (0 is a successful no-op).
          """
          with self._transaction() as db:
               state = self._load_state(db, for_update=True)
               require_owner(self._authorizer, state, caller, "withdraw")
               client = self._require_token(state)
               custody = state.custody_account
               amount = client.balance_of(custody)
               if amount == 0:
                    logger.info(f"Ledger {self.ledger_id}: nothing to withdraw")
                    return 0
               safe_transfer(client, state.token_identifier, custody, caller, amount)
               logger.info(f"Ledger {self.ledger_id}: {caller} withdrew {amount} {state.token_identifier}")
               return amount

     # ------------------------------------------------------------------
     # Read-only queries
     # ------------------------------------------------------------------

     def get_state(self) -> LedgerState:
          with self._read() as db:
               return self._load_state(db)

     def latest_payment(self, subscriber: str) -> Optional[SubscriptionPayment]:
          with self._read() as db:
               account = self._account(db, subscriber)
               return account.latest_payment if account is not None else None

     def last_payment_moment(self, subscriber: str) -> int:
          """paid_at of the subscriber's latest payment, 0 if they never paid."""
          payment = self.latest_payment(subscriber)
          return payment.paid_at if payment is not None else 0

     def last_expiry(self, subscriber: str) -> int:
          payment = self.latest_payment(subscriber)
          return payment.expires_at if payment is not None else 0

     def total_paid_by(self, subscriber: str) -> int:
          with self._read() as db:
               account = self._account(db, subscriber)
               return account.total_paid if account is not None else 0

     def total_collected(self) -> int:
          return self.get_state().total_collected

     def collected_by_token(self, token_identifier: str) -> int:
          """Observed amounts received while `token_identifier` was the configured token."""
          with self._read() as db:
               rows = (
                    db.query(SubscriptionPayment.amount_received)
                    .filter(
                         SubscriptionPayment.ledger_id == self.ledger_id,
                         SubscriptionPayment.token_identifier == token_identifier
                    )
                    .all()
               )
               return sum(row[0] for row in rows)

     def payment_history(self, offset: int = 0, limit: Optional[int] = None) -> List[SubscriptionPayment]:
          """Payments in chronological (insertion) order."""
          with self._read() as db:
               self._load_state(db)
               query = (
                    db.query(SubscriptionPayment)
                    .filter(SubscriptionPayment.ledger_id == self.ledger_id)
                    .order_by(SubscriptionPayment.id)
                    .offset(offset)
               )
               if limit is not None:
                    query = query.limit(limit)
               return query.all()

     def payment_count(self) -> int:
          with self._read() as db:
               return (
                    db.query(SubscriptionPayment)
                    .filter(SubscriptionPayment.ledger_id == self.ledger_id)
                    .count()
               )

     def payment_events(self, offset: int = 0, limit: Optional[int] = None) -> List[PaymentEvent]:
          with self._read() as db:
               self._load_state(db)
               query = (
                    db.query(PaymentEvent)
                    .filter(PaymentEvent.ledger_id == self.ledger_id)
                    .order_by(PaymentEvent.id)
                    .offset(offset)
               )
               if limit is not None:
                    query = query.limit(limit)
               return query.all()

     def current_token_balance(self) -> int:
          """Custody balance of the configured token; 0 when no usable token is configured."""
          state = self.get_state()
          if state.token_identifier is None:
               return 0
          try:
               client = self._resolve_token(state.token_identifier)
          except TransferFailure:
               logger.warning(f"Ledger {self.ledger_id}: token '{state.token_identifier}' cannot be resolved")
               return 0
          return client.balance_of(state.custody_account)
