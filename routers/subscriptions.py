"""
Subscription ledger API routes.

The authenticated caller (JWT `sub`) is the identity passed to every ledger
operation:
- Anyone authenticated: create a ledger (becoming its owner), pay, read
- Ledger owner: set fee / token / fee collector, transfer ownership, withdraw
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from auth import get_caller
from database import session_scope
from models import SubscriptionPayment
from schemas.subscription import (
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
from services.exceptions import (
     LedgerError,
     LedgerNotFound,
     CustodyAccountInUse,
     LedgerNotConfigured,
     AuthorizationError,
     TransferFailure,
     SubscriptionExpired,
     InvalidPeriodCount,
)
from services.subscription_ledger import SubscriptionLedger, create_ledger

router = APIRouter(prefix="/api/ledgers", tags=["subscriptions"])


# ---------------------------------------------------------------------------
# Dependencies and error translation
# ---------------------------------------------------------------------------

def _http_error(exc: LedgerError) -> HTTPException:
     """Map a service-layer failure to the HTTP error the client sees."""
     if isinstance(exc, LedgerNotFound):
          code = status.HTTP_404_NOT_FOUND
     elif isinstance(exc, (AuthorizationError, SubscriptionExpired)):
          code = status.HTTP_403_FORBIDDEN
     elif isinstance(exc, TransferFailure):
          code = status.HTTP_402_PAYMENT_REQUIRED
     elif isinstance(exc, (LedgerNotConfigured, CustodyAccountInUse)):
          code = status.HTTP_409_CONFLICT
     elif isinstance(exc, InvalidPeriodCount):
          code = status.HTTP_422_UNPROCESSABLE_ENTITY
     else:
          code = status.HTTP_500_INTERNAL_SERVER_ERROR
     return HTTPException(status_code=code, detail=str(exc))


def get_ledger(ledger_id: int, request: Request) -> SubscriptionLedger:
     """Ledger service for the ledger named in the path, wired from app state."""
     app_state = request.app.state
     ledger = SubscriptionLedger(
          app_state.session_factory,
          ledger_id,
          app_state.token_registry,
          clock=app_state.clock,
     )
     for listener in app_state.payment_listeners:
          ledger.subscribe(listener)
     return ledger


def require_active_subscriber(
     ledger: SubscriptionLedger = Depends(get_ledger),
     caller: str = Depends(get_caller),
) -> SubscriptionPayment:
     """
     Gate for subscriber-only routes: resolves to the caller's latest payment,
     or 403 when the subscription is missing or expired.
     """
     try:
          return ledger.require_active_subscription(caller)
     except LedgerError as exc:
          raise _http_error(exc) from exc


# ---------------------------------------------------------------------------
# Ledger lifecycle
# ---------------------------------------------------------------------------

@router.post(
     "",
     response_model=LedgerStateResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a ledger"
)
def create_ledger_route(request: Request, caller: str = Depends(get_caller)):
     """
     Create a ledger owned by the caller. Fee and token must be set before payments.

     The custody account is always derived from the new ledger id; clients never
     choose which token holder a ledger (and its withdraw) controls.
     """
     try:
          with session_scope(request.app.state.session_factory) as db:
               state = create_ledger(db, owner=caller)
     except LedgerError as exc:
          raise _http_error(exc) from exc
     return LedgerStateResponse.model_validate(state)


@router.get("/{ledger_id}", response_model=LedgerStateResponse, summary="Ledger configuration and totals")
def get_ledger_state(ledger: SubscriptionLedger = Depends(get_ledger)):
     try:
          return LedgerStateResponse.model_validate(ledger.get_state())
     except LedgerError as exc:
          raise _http_error(exc) from exc


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

@router.post(
     "/{ledger_id}/payments",
     response_model=PaymentResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Pay for subscription periods"
)
def record_payment(
     body: PaymentCreate,
     ledger: SubscriptionLedger = Depends(get_ledger),
     caller: str = Depends(get_caller),
):
     """
     Charge the caller `period_count * fee` of the configured token and extend
     their subscription to now + period_count * 30 days.

     The caller must have approved the ledger's custody account beforehand.
     """
     try:
          payment = ledger.record_payment(caller, body.period_count)
     except LedgerError as exc:
          raise _http_error(exc) from exc
     return PaymentResponse.model_validate(payment)


@router.get("/{ledger_id}/payments", response_model=PaymentListResponse, summary="Payment history")
def list_payments(
     offset: int = Query(0, ge=0),
     limit: Optional[int] = Query(None, ge=1, le=500),
     ledger: SubscriptionLedger = Depends(get_ledger),
):
     try:
          payments = ledger.payment_history(offset=offset, limit=limit)
          total = ledger.payment_count()
     except LedgerError as exc:
          raise _http_error(exc) from exc
     return PaymentListResponse(
          items=[PaymentResponse.model_validate(p) for p in payments],
          total=total,
     )


@router.get("/{ledger_id}/events", response_model=List[PaymentEventResponse], summary="Payment events")
def list_events(
     offset: int = Query(0, ge=0),
     limit: Optional[int] = Query(None, ge=1, le=500),
     ledger: SubscriptionLedger = Depends(get_ledger),
):
     try:
          events = ledger.payment_events(offset=offset, limit=limit)
     except LedgerError as exc:
          raise _http_error(exc) from exc
     return [PaymentEventResponse.model_validate(e) for e in events]


@router.get(
     "/{ledger_id}/subscribers/{subscriber}",
     response_model=SubscriberResponse,
     summary="Subscription status of one subscriber"
)
def get_subscriber(subscriber: str, ledger: SubscriptionLedger = Depends(get_ledger)):
     try:
          ledger.get_state()
          latest = ledger.latest_payment(subscriber)
          return SubscriberResponse(
               subscriber=subscriber,
               active=ledger.is_subscription_active(subscriber),
               last_payment_moment=latest.paid_at if latest is not None else 0,
               total_paid=ledger.total_paid_by(subscriber),
               latest_payment=PaymentResponse.model_validate(latest) if latest is not None else None,
          )
     except LedgerError as exc:
          raise _http_error(exc) from exc


@router.get("/{ledger_id}/access", response_model=PaymentResponse, summary="Check the caller's access")
def check_access(payment: SubscriptionPayment = Depends(require_active_subscriber)):
     """Succeeds only while the caller's subscription is active."""
     return PaymentResponse.model_validate(payment)


@router.get("/{ledger_id}/balance", response_model=BalanceResponse, summary="Ledger token balance")
def get_balance(ledger: SubscriptionLedger = Depends(get_ledger)):
     try:
          state = ledger.get_state()
     except LedgerError as exc:
          raise _http_error(exc) from exc
     return BalanceResponse(
          token_identifier=state.token_identifier,
          balance=ledger.current_token_balance(),
     )


# ---------------------------------------------------------------------------
# Owner-only configuration
# ---------------------------------------------------------------------------

@router.put("/{ledger_id}/fee", response_model=LedgerStateResponse, summary="Set fee per period")
def set_fee(
     body: FeeUpdate,
     ledger: SubscriptionLedger = Depends(get_ledger),
     caller: str = Depends(get_caller),
):
     try:
          return LedgerStateResponse.model_validate(ledger.set_fee(caller, body.fee_amount))
     except LedgerError as exc:
          raise _http_error(exc) from exc


@router.put("/{ledger_id}/token", response_model=LedgerStateResponse, summary="Set accepted token")
def set_token(
     body: TokenUpdate,
     ledger: SubscriptionLedger = Depends(get_ledger),
     caller: str = Depends(get_caller),
):
     try:
          return LedgerStateResponse.model_validate(ledger.set_token(caller, body.token_identifier))
     except LedgerError as exc:
          raise _http_error(exc) from exc


@router.put("/{ledger_id}/fee-collector", response_model=LedgerStateResponse, summary="Set fee collector")
def set_fee_collector(
     body: FeeCollectorUpdate,
     ledger: SubscriptionLedger = Depends(get_ledger),
     caller: str = Depends(get_caller),
):
     try:
          return LedgerStateResponse.model_validate(ledger.set_fee_collector(caller, body.fee_collector))
     except LedgerError as exc:
          raise _http_error(exc) from exc


@router.put("/{ledger_id}/owner", response_model=LedgerStateResponse, summary="Transfer ownership")
def transfer_ownership(
     body: OwnerUpdate,
     ledger: SubscriptionLedger = Depends(get_ledger),
     caller: str = Depends(get_caller),
):
     try:
          return LedgerStateResponse.model_validate(ledger.transfer_ownership(caller, body.new_owner))
     except LedgerError as exc:
          raise _http_error(exc) from exc


@router.post("/{ledger_id}/withdraw", response_model=WithdrawResponse, summary="Withdraw collected funds")
def withdraw(
     ledger: SubscriptionLedger = Depends(get_ledger),
     caller: str = Depends(get_caller),
):
     """Send the ledger's whole token balance to the calling owner."""
     try:
          amount = ledger.withdraw(caller)
          state = ledger.get_state()
     except LedgerError as exc:
          raise _http_error(exc) from exc
     return WithdrawResponse(recipient=caller, amount=amount, token_identifier=state.token_identifier)
