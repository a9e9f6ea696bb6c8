from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime, timezone
import time


def _now_ms() -> int:
    return int(time.time() * 1000)


class PriceFeed(BaseModel):
    symbol: str
    price: float
    source: str
    confidence: float = 0.0
    timestamp: int = Field(default_factory=_now_ms)  # ms


class FundingRate(BaseModel):
    symbol: str
    exchange: str
    rate: float  # per funding interval
    interval_hours: float = 8
    timestamp: int = Field(default_factory=_now_ms)
    next_funding_time: Optional[int] = None
    mark_price: float = 0.0
    index_price: float = 0.0

    @property
    def annualized(self) -> float:
        return self.rate * (24 / self.interval_hours) * 365


class LPPosition(BaseModel):
    """Liquidity position descriptor used for IL hedging"""
    base_token: str
    quote_token: str
    value: float  # USD
    base_amount: float
    quote_amount: float
    pool_address: str = ""
    protocol: str = "dragonswap"

    @property
    def pair(self) -> str:
        return f"{self.base_token}/{self.quote_token}"


class HedgeStrategy(BaseModel):
    """A provider's hedge recommendation"""
    symbol: str
    size: float  # USD
    action: Literal["long", "short"]
    hedge_ratio: float
    expected_il_reduction: str


class PerpsTradeParams(BaseModel):
    symbol: str
    size: float  # USD notional
    side: Literal["long", "short"]
    leverage: float = 1
    slippage_bps: int = 50
    reduce_only: bool = False

    @field_validator("size")
    @classmethod
    def _positive_size(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("size must be positive")
        return v

    @field_validator("leverage")
    @classmethod
    def _leverage_range(cls, v: float) -> float:
        if not 1 <= v <= 50:
            raise ValueError("leverage must be between 1x and 50x")
        return v


class PerpsPosition(BaseModel):
    symbol: str
    size: float
    side: Literal["long", "short"]
    entry_price: float = 0.0
    mark_price: float = 0.0
    pnl: float = 0.0
    leverage: float = 1
    margin: float = 0.0
    liquidation_price: float = 0.0


class PoolInfo(BaseModel):
    address: str
    token0: str
    token1: str
    fee: float
    liquidity: str
    price: str


class SwapQuote(BaseModel):
    amount_out: float
    price_impact: float = 0.0
    route: List[str] = Field(default_factory=list)
    gas_estimate: int = 200000
    exchange: str = "dragonswap"


class SwapParams(BaseModel):
    token_in: str
    token_out: str
    amount_in: float
    slippage_bps: int = 100
    deadline_seconds: int = 1200


class TransferParams(BaseModel):
    to_address: str
    amount: float
    token: str = "SEI"


class TxReceipt(BaseModel):
    hash: str
    from_address: str
    to_address: str
    value: float
    chain_id: int
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
