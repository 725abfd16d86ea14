# file: models.py
import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_LEVERAGE = 125
MAX_SIZE = Decimal("10000000")
MAX_RISK_PERCENT = Decimal("100")

DECIMAL_RE = re.compile(r"^\d+(?:\.\d+)?$")

T = TypeVar("T")


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class SizeType(str, Enum):
    BASE = "BASE"
    QUOTE = "QUOTE"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class Token(BaseModel):
    """Один токен команды: исходный текст (регистр сохранён) и позиция."""
    model_config = ConfigDict(frozen=True)

    value: str
    index: int = Field(..., ge=0)

    @property
    def lower(self) -> str:
        return self.value.lower()


class ExtractedField(BaseModel, Generic[T]):
    """Result of one extractor: either absent, or a value with the tokens it came from."""
    model_config = ConfigDict(frozen=True)

    value: Optional[T] = None
    source_tokens: Tuple[Token, ...] = ()

    @classmethod
    def absent(cls):
        return cls()

    @classmethod
    def present(cls, value, *tokens: Token):
        return cls(value=value, source_tokens=tuple(tokens))

    @property
    def is_present(self) -> bool:
        return bool(self.source_tokens)

    @property
    def source_text(self) -> str:
        return " ".join(t.value for t in self.source_tokens)


def _check_decimal(value: str, field_name: str, upper: Decimal) -> str:
    if not DECIMAL_RE.match(value):
        raise ValueError(f"{field_name} must be a plain decimal string, got {value!r}")
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"{field_name} is not a number: {value!r}")
    if number <= 0 or number >= upper:
        raise ValueError(f"{field_name} must be greater than 0 and less than {upper}")
    return value


class ParsedCommand(BaseModel):
    """Каноническая торговая команда. Невалидный экземпляр создать нельзя."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    action: Action
    symbol: str = Field(..., min_length=3, max_length=14, pattern=r"^[A-Z0-9]+$")
    size: str
    size_type: SizeType
    order_type: OrderType = OrderType.MARKET
    reduce_only: bool = False
    leverage: Optional[int] = Field(default=None, ge=1, le=MAX_LEVERAGE, strict=True)
    stop_loss_percent: Optional[str] = None
    take_profit_percent: Optional[str] = None
    trailing_stop_percent: Optional[str] = None

    @field_validator("size")
    @classmethod
    def size_in_range(cls, v: str) -> str:
        return _check_decimal(v, "size", MAX_SIZE)

    @field_validator("stop_loss_percent", "take_profit_percent", "trailing_stop_percent")
    @classmethod
    def percent_in_range(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return _check_decimal(v, info.field_name, MAX_RISK_PERCENT)

    def to_order_params(self) -> Dict[str, object]:
        """Параметры для вызова размещения ордера на бирже."""
        params: Dict[str, object] = {
            "symbol": self.symbol,
            "side": self.action.value,
            "type": self.order_type.value,
        }
        if self.size_type == SizeType.QUOTE:
            params["quoteOrderQty"] = self.size
        else:
            params["quantity"] = self.size
        if self.leverage is not None:
            params["leverage"] = self.leverage
        if self.reduce_only:
            params["reduceOnly"] = True
        return params


class ParseResult(BaseModel):
    """Either a valid command, or the ordered list of reasons it was rejected."""
    model_config = ConfigDict(frozen=True)

    success: bool
    command: Optional[ParsedCommand] = None
    errors: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def exactly_one_outcome(self):
        if self.success and (self.command is None or self.errors):
            raise ValueError("a successful result carries a command and no errors")
        if not self.success and (self.command is not None or not self.errors):
            raise ValueError("a failed result carries errors and no command")
        return self

    @classmethod
    def ok(cls, command: ParsedCommand, suggestions: Optional[List[str]] = None) -> "ParseResult":
        return cls(success=True, command=command, suggestions=suggestions or [])

    @classmethod
    def fail(cls, errors: List[str], suggestions: Optional[List[str]] = None) -> "ParseResult":
        return cls(success=False, errors=list(errors), suggestions=suggestions or [])
