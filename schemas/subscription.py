"""
Pydantic schemas for the subscription ledger API.

Token amounts are integers in token base units.
"""
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class LedgerStateResponse(BaseModel):
     id: int
     owner: str
     fee_collector: str
     fee_amount: Optional[int] = None
     token_identifier: Optional[str] = None
     total_collected: int
     custody_account: str

     model_config = ConfigDict(from_attributes=True)


class PaymentCreate(BaseModel):
     """Request body for POST /api/ledgers/{ledger_id}/payments."""
     period_count: int = Field(..., ge=1, description="Number of 30-day periods to pay for")

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "period_count": 3,
               }
          }
     )


class PaymentResponse(BaseModel):
     id: int
     payer: str
     paid_at: int = Field(..., description="Epoch seconds")
     expires_at: int = Field(..., description="Epoch seconds; access ends at this moment")
     period_count: int
     nominal_fee: int = Field(..., description="period_count * fee at payment time")
     amount_received: int = Field(..., description="Observed increase of the ledger's token balance")
     token_identifier: str

     model_config = ConfigDict(from_attributes=True)


class PaymentEventResponse(BaseModel):
     id: int
     payment_id: int
     payer: str
     nominal_fee: int
     period_count: int
     emitted_at: int

     model_config = ConfigDict(from_attributes=True)


class SubscriberResponse(BaseModel):
     subscriber: str
     active: bool
     last_payment_moment: int
     total_paid: int
     latest_payment: Optional[PaymentResponse] = None


class FeeUpdate(BaseModel):
     fee_amount: int = Field(..., ge=0, description="Price per period in token base units")


class TokenUpdate(BaseModel):
     token_identifier: str = Field(..., min_length=1, max_length=128)


class FeeCollectorUpdate(BaseModel):
     fee_collector: str = Field(..., min_length=1, max_length=128)


class OwnerUpdate(BaseModel):
     new_owner: str = Field(..., min_length=1, max_length=128)


class WithdrawResponse(BaseModel):
     recipient: str
     amount: int
     token_identifier: str


class BalanceResponse(BaseModel):
     token_identifier: Optional[str] = None
     balance: int


class PaymentListResponse(BaseModel):
     items: List[PaymentResponse]
     total: int
