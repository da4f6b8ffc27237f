"""Account data model."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from coredrift.models.document import Document

AccountType = Literal[
    "Live",
    "Prop Evaluation",
    "Prop Verification",
    "Prop Funded",
    "Demo",
]

ACCOUNT_TYPES: tuple[str, ...] = AccountType.__args__


class Account(Document):
    """A trading account that owns trades."""

    id: Optional[str] = Field(default=None, description="Repository-assigned ID")
    user_id: str = Field(..., min_length=1, description="Owning user ID")
    name: str = Field(..., min_length=1, description="Account name")
    initial_balance: float = Field(..., ge=0, description="Baseline capital")
    current_balance: Optional[float] = Field(
        default=None, description="Initial balance plus realized P&L of active trades"
    )
    account_type: AccountType = Field(default="Live", description="Account type")
    created_at: Optional[datetime] = Field(default=None, description="Creation time")
    updated_at: Optional[datetime] = Field(default=None, description="Last update time")
