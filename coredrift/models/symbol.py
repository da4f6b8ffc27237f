"""Symbol reference data model."""

from typing import Optional

from pydantic import Field

from coredrift.models.document import Document


class Symbol(Document):
    """Pip metadata for a tradable symbol."""

    id: str = Field(..., min_length=1, description="Ticker")
    pip_size: float = Field(..., gt=0, description="Price distance of one pip")
    pip_value_per_lot: float = Field(..., gt=0, description="Value of one pip at one lot")
    contract_size: Optional[float] = Field(default=None, gt=0, description="Units per lot")


DEFAULT_SYMBOLS = [
    Symbol(id="EURUSD", pip_size=0.0001, pip_value_per_lot=10, contract_size=100000),
    Symbol(id="XAUUSD", pip_size=0.1, pip_value_per_lot=10, contract_size=100),
    Symbol(id="NASDAQ", pip_size=1, pip_value_per_lot=1, contract_size=1),
    Symbol(id="BTCUSD", pip_size=1, pip_value_per_lot=1, contract_size=1),
]
