"""
Credit Ledger Models.

Credit sources (user_credits rows) and reservations (credit_reservations rows).
A reservation records exactly which source rows were debited so a refund can
restore them.

Exports:
    CreditAccount: One credit source row
    CreditAllocation: Amount debited from one source row
    CreditReservation: Provisional debit held for one attempt
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from .enums import ReservationStatus


class CreditAccount(BaseModel):
    """
    One row of app.user_credits.

    A user can hold several active sources (subscription grant, top-ups).
    """
    model_config = ConfigDict(extra='ignore')

    id: str
    user_id: str
    credits: int = Field(..., ge=0)
    plan_type: str
    status: str = "active"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CreditAllocation(BaseModel):
    """Amount debited from one credit source by a reservation."""
    credit_id: str
    deducted: int = Field(..., gt=0)


class CreditReservation(BaseModel):
    """
    Provisional debit held pending the outcome of an attempt.

    Every reservation reaches exactly one terminal status.
    """
    model_config = ConfigDict(extra='ignore')

    reservation_id: str
    user_id: str
    amount: int = Field(..., gt=0)
    status: ReservationStatus = ReservationStatus.RESERVED
    allocations: List[CreditAllocation] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None

    @property
    def is_settled(self) -> bool:
        return self.status != ReservationStatus.RESERVED
