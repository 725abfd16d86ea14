# file: command_parser.py
"""Parser for chat trade commands such as ``/buy BTCUSDT 100u x5 sl1% tp3%``.

Pipeline: normalize -> tokenize -> field extractors -> validator -> assembler.
Extractors only recognise surface forms and capture the raw text; every range
and format rule lives in the ``validate_*`` functions so that all problems of a
command are reported together. ``parse_trade_command`` never raises.
"""
import re
from decimal import Decimal
from functools import partial
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from exceptions import CommandParseError, CommandSyntaxError, CommandValidationError, MissingFieldError
from models import (
    MAX_LEVERAGE,
    MAX_RISK_PERCENT,
    MAX_SIZE,
    Action,
    ExtractedField,
    OrderType,
    ParsedCommand,
    ParseResult,
    SizeType,
    Token,
)

MAX_INPUT_LENGTH = 256
MIN_SYMBOL_LEN = 3
MAX_SYMBOL_LEN = 10
QUOTE_ASSETS = ("FDUSD", "USDT", "USDC", "BUSD", "USD")
DEFAULT_QUOTE_ASSET = "USDT"

ACTIONS = {"/buy": Action.BUY, "/sell": Action.SELL}

USAGE_HINT = "Try: /buy BTCUSDT 100u x5 sl1% tp3%"
LEVERAGE_HINT = "Consider adding leverage (e.g., x5)"
RISK_HINT = "Consider adding risk management (sl1% tp3%)"

MIN_BASE_LEN = 2

WHITESPACE_RE = re.compile(r"[ \t\r\n]+")
DISALLOWED_CHAR_RE = re.compile(r"[^A-Za-z0-9/.%= -]")
SYMBOL_RE = re.compile(r"^[A-Za-z0-9]+$")
SIZE_RE = re.compile(r"^(-?\d+(?:\.\d+)?)(u|usdt)?$", re.IGNORECASE)
SIGNED_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
SIZE_UNIT_TOKENS = ("USDT", "usdt")

LEVERAGE_PREFIX_RE = re.compile(r"^x(-?[\d.]+)$", re.IGNORECASE)
LEVERAGE_SUFFIX_RE = re.compile(r"^(-?[\d.]+)x$", re.IGNORECASE)
LEVERAGE_KEYWORD = "leverage"

ORDER_TYPE_KEYWORDS = {
    "mkt": OrderType.MARKET,
    "market": OrderType.MARKET,
    "limit": OrderType.LIMIT,
    "lmt": OrderType.LIMIT,
}
REDUCE_KEYWORDS = ("reduce", "reduceonly", "reduce-only")

# Keywords whose next token is their argument, never an order size.
ARGUMENT_KEYWORDS = {LEVERAGE_KEYWORD, "sl", "tp", "trail", "trailing", "stop", "loss", "profit"}


class RiskParameter:
    """Accepted spellings of one percentage parameter (stop loss, take profit, trailing)."""

    def __init__(self, field: str, label: str, keywords: Tuple[str, ...], verbose: Tuple[str, str]):
        self.field = field
        self.label = label
        self.keywords = keywords
        self.verbose = verbose
        alternatives = "|".join(keywords)
        self.compact_re = re.compile(rf"^(?:{alternatives})(-?[\d.]+)%?$", re.IGNORECASE)
        self.equals_re = re.compile(rf"^(?:{alternatives})=(.*)$", re.IGNORECASE)


STOP_LOSS = RiskParameter("stop_loss_percent", "stop loss", ("sl",), ("stop", "loss"))
TAKE_PROFIT = RiskParameter("take_profit_percent", "take profit", ("tp",), ("take", "profit"))
TRAILING_STOP = RiskParameter("trailing_stop_percent", "trailing stop", ("trailing", "trail"), ("trailing", "stop"))


class TokenStream:
    """Immutable, re-iterable view over the tokens of one command."""

    def __init__(self, tokens: Tuple[Token, ...]):
        self._tokens = tokens

    def __iter__(self) -> Iterator[Token]:
        return iter(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def __getitem__(self, index: int) -> Token:
        return self._tokens[index]

    def after(self, index: int) -> Iterator[Token]:
        return iter(self._tokens[index + 1:])

    def previous(self, token: Token) -> Optional[Token]:
        return self._tokens[token.index - 1] if token.index > 0 else None

    def following(self, token: Token, offset: int = 1) -> Optional[Token]:
        position = token.index + offset
        return self._tokens[position] if position < len(self._tokens) else None

    def modifiers(self) -> Iterator[Token]:
        """Tokens after the action and the symbol."""
        return self.after(1)


# --- Normalizer & tokenizer ---

def normalize(raw) -> str:
    """Trims and collapses whitespace; rejects oversized input and foreign characters."""
    if isinstance(raw, (bytes, bytearray)):
        if len(raw) > MAX_INPUT_LENGTH:
            raise CommandSyntaxError(f"Command is too long (max {MAX_INPUT_LENGTH} characters)")
        raw = bytes(raw).decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        raise CommandSyntaxError("Command must be text")
    if len(raw) > MAX_INPUT_LENGTH:
        raise CommandSyntaxError(f"Command is too long (max {MAX_INPUT_LENGTH} characters)")

    # Only ASCII whitespace separates tokens; any other space-like character is rejected below.
    collapsed = WHITESPACE_RE.sub(" ", raw).strip(" ")
    if not collapsed:
        raise CommandSyntaxError("Empty command. Commands start with /buy or /sell")

    bad_char = DISALLOWED_CHAR_RE.search(collapsed)
    if bad_char:
        raise CommandSyntaxError(f"Unsupported character {bad_char.group(0)!r} in command")
    return collapsed


def tokenize(normalized: str) -> TokenStream:
    return TokenStream(tuple(Token(value=value, index=i) for i, value in enumerate(normalized.split(" "))))


# --- Extractors ---

def extract_action(stream: TokenStream) -> Action:
    # Case-sensitive on purpose: only "/buy" and "/sell" are accepted.
    action = ACTIONS.get(stream[0].value)
    if action is None:
        raise CommandSyntaxError(f"Unrecognized command '{stream[0].value}'. Command must start with /buy or /sell")
    return action


def extract_symbol(stream: TokenStream) -> ExtractedField:
    if len(stream) < 2:
        raise MissingFieldError("Missing symbol (e.g. BTCUSDT)")
    token = stream[1]
    return ExtractedField.present(token.value, token)


def _is_size_candidate(token: Token, previous: Optional[Token]) -> bool:
    # Index 1 is the symbol, which may legitimately spell a keyword (e.g. STOP).
    if previous is not None and previous.index >= 2 and previous.lower in ARGUMENT_KEYWORDS:
        return False
    text = token.value
    if text[0] not in "-.0123456789":
        return False
    return not (text.endswith("%") or LEVERAGE_SUFFIX_RE.match(text))


def extract_size(stream: TokenStream) -> ExtractedField:
    """First numeric-looking token wins. Value is ``(amount_text, SizeType)``."""
    for token in stream.modifiers():
        if not _is_size_candidate(token, stream.previous(token)):
            continue
        match = SIZE_RE.match(token.value)
        if not match:
            # Malformed candidate: handed to the validator as-is.
            return ExtractedField.present((token.value, SizeType.BASE), token)
        amount, unit = match.groups()
        if unit:
            return ExtractedField.present((amount, SizeType.QUOTE), token)
        unit_token = stream.following(token)
        if unit_token is not None and unit_token.value in SIZE_UNIT_TOKENS:
            return ExtractedField.present((amount, SizeType.QUOTE), token, unit_token)
        return ExtractedField.present((amount, SizeType.BASE), token)
    raise MissingFieldError("Missing size (e.g. 100u for quote or 0.25 for base)")


def extract_leverage(stream: TokenStream) -> ExtractedField:
    for token in stream.modifiers():
        match = LEVERAGE_PREFIX_RE.match(token.value) or LEVERAGE_SUFFIX_RE.match(token.value)
        if match:
            return ExtractedField.present(match.group(1), token)
        if token.lower == LEVERAGE_KEYWORD:
            value_token = stream.following(token)
            if value_token is None:
                return ExtractedField.present("", token)
            return ExtractedField.present(value_token.value, token, value_token)
    return ExtractedField.absent()


def _match_compact(stream: TokenStream, param: RiskParameter) -> Optional[ExtractedField]:
    for token in stream.modifiers():
        match = param.compact_re.match(token.value)
        if match:
            return ExtractedField.present(match.group(1), token)
    return None


def _match_equals(stream: TokenStream, param: RiskParameter) -> Optional[ExtractedField]:
    for token in stream.modifiers():
        match = param.equals_re.match(token.value)
        if match:
            return ExtractedField.present(match.group(1), token)
    return None


def _match_verbose(stream: TokenStream, param: RiskParameter) -> Optional[ExtractedField]:
    first, second = param.verbose
    for token in stream.modifiers():
        next_token = stream.following(token)
        if token.lower == first and next_token is not None and next_token.lower == second:
            value_token = stream.following(token, 2)
            if value_token is None:
                return ExtractedField.present("", token, next_token)
            return ExtractedField.present(value_token.value, token, next_token, value_token)
    return None


def _match_spaced(stream: TokenStream, param: RiskParameter) -> Optional[ExtractedField]:
    for token in stream.modifiers():
        if token.lower in param.keywords:
            value_token = stream.following(token)
            if value_token is None:
                return ExtractedField.present("", token)
            return ExtractedField.present(value_token.value, token, value_token)
    return None


RISK_FORMS = (_match_compact, _match_equals, _match_verbose, _match_spaced)


def extract_risk_parameter(stream: TokenStream, param: RiskParameter) -> ExtractedField:
    """Tries each accepted form in precedence order; the first form that matches wins."""
    for form in RISK_FORMS:
        field = form(stream, param)
        if field is not None:
            return field
    return ExtractedField.absent()


def extract_order_type(stream: TokenStream) -> ExtractedField:
    found = [t for t in stream.modifiers() if t.lower in ORDER_TYPE_KEYWORDS]
    if not found:
        return ExtractedField.absent()
    kinds = tuple(dict.fromkeys(ORDER_TYPE_KEYWORDS[t.lower] for t in found))
    return ExtractedField.present(kinds, *found)


def extract_reduce_only(stream: TokenStream) -> ExtractedField:
    for token in stream.modifiers():
        if token.lower in REDUCE_KEYWORDS:
            return ExtractedField.present(True, token)
    return ExtractedField.absent()


# --- Validator ---

def canonical_decimal(text: str) -> str:
    """Strips redundant leading zeros without touching the fractional digits."""
    whole, dot, fraction = text.partition(".")
    whole = whole.lstrip("0") or "0"
    return f"{whole}{dot}{fraction}"


def split_quote(symbol: str) -> Tuple[str, Optional[str]]:
    """Splits an uppercase pair into (base, quote); quote is None when no known suffix matches."""
    for quote in QUOTE_ASSETS:
        if symbol.endswith(quote):
            return symbol[:-len(quote)], quote
    return symbol, None


def normalize_symbol(raw: str) -> str:
    symbol = raw.upper()
    if symbol.endswith(QUOTE_ASSETS):
        return symbol
    return symbol + DEFAULT_QUOTE_ASSET


def validate_symbol(field: ExtractedField) -> str:
    raw = field.value
    if not SYMBOL_RE.match(raw):
        raise CommandValidationError(f"Invalid symbol '{raw}': only letters and digits are allowed")
    if not MIN_SYMBOL_LEN <= len(raw) <= MAX_SYMBOL_LEN:
        raise CommandValidationError(
            f"Invalid symbol length: '{raw}' must be {MIN_SYMBOL_LEN}-{MAX_SYMBOL_LEN} characters"
        )
    if raw.isdigit():
        raise CommandValidationError(f"Invalid symbol '{raw}': must contain letters")
    symbol = normalize_symbol(raw)
    base, _ = split_quote(symbol)
    if len(base) < MIN_BASE_LEN:
        raise CommandValidationError(f"Invalid symbol '{raw}': missing base asset (e.g. BTC in BTCUSDT)")
    return symbol


def validate_size(field: ExtractedField) -> Tuple[str, SizeType]:
    amount, size_type = field.value
    if not SIGNED_NUMBER_RE.match(amount):
        raise CommandValidationError(f"Invalid size format '{field.source_text}': use e.g. 100u or 0.25")
    if amount.startswith("-"):
        raise CommandValidationError(f"Invalid size '{field.source_text}': size must be positive")
    value = Decimal(amount)
    if value == 0:
        raise CommandValidationError(f"Invalid size '{field.source_text}': size must be greater than zero")
    if value >= MAX_SIZE:
        raise CommandValidationError(f"Invalid size '{field.source_text}': size must be below {MAX_SIZE:,}")
    return canonical_decimal(amount), size_type


def validate_leverage(field: ExtractedField) -> Optional[int]:
    if not field.is_present:
        return None
    raw = field.value
    if not SIGNED_NUMBER_RE.match(raw) or "." in raw:
        raise CommandValidationError(
            f"Invalid leverage '{field.source_text}': must be a whole number between 1 and {MAX_LEVERAGE}"
        )
    leverage = int(raw)
    if not 1 <= leverage <= MAX_LEVERAGE:
        raise CommandValidationError(f"Invalid leverage '{field.source_text}': must be between 1 and {MAX_LEVERAGE}")
    return leverage


def validate_percent(field: ExtractedField, param: RiskParameter) -> Optional[str]:
    if not field.is_present:
        return None
    raw = field.value[:-1] if field.value.endswith("%") else field.value
    if not SIGNED_NUMBER_RE.match(raw):
        raise CommandValidationError(f"Invalid {param.label} '{field.source_text}': expected a percentage like 1.5%")
    value = Decimal(raw)
    if value <= 0 or value >= MAX_RISK_PERCENT:
        raise CommandValidationError(
            f"Invalid {param.label} '{field.source_text}': must be greater than 0% and less than {MAX_RISK_PERCENT}%"
        )
    return canonical_decimal(raw)


def validate_order_type(field: ExtractedField) -> OrderType:
    if not field.is_present:
        return OrderType.MARKET
    if len(field.value) > 1:
        raise CommandValidationError(f"Conflicting order types: '{field.source_text}'")
    return field.value[0]


def validate_reduce_only(field: ExtractedField) -> bool:
    return field.is_present


# (command field, extractor, validator) in error-reporting order.
FIELD_PIPELINE: List[Tuple[str, Callable, Callable]] = [
    ("symbol", extract_symbol, validate_symbol),
    ("size", extract_size, validate_size),
    ("leverage", extract_leverage, validate_leverage),
    (STOP_LOSS.field, partial(extract_risk_parameter, param=STOP_LOSS), partial(validate_percent, param=STOP_LOSS)),
    (TAKE_PROFIT.field, partial(extract_risk_parameter, param=TAKE_PROFIT), partial(validate_percent, param=TAKE_PROFIT)),
    (TRAILING_STOP.field, partial(extract_risk_parameter, param=TRAILING_STOP), partial(validate_percent, param=TRAILING_STOP)),
    ("order_type", extract_order_type, validate_order_type),
    ("reduce_only", extract_reduce_only, validate_reduce_only),
]


def validate_fields(stream: TokenStream) -> Tuple[Dict[str, object], List[str]]:
    """Runs every extractor and validator, collecting all errors instead of stopping at the first."""
    values: Dict[str, object] = {}
    errors: List[str] = []
    for name, extractor, validator in FIELD_PIPELINE:
        try:
            values[name] = validator(extractor(stream))
        except (MissingFieldError, CommandValidationError) as e:
            errors.append(e.message)
    return values, errors


# --- Assembler ---

def build_suggestions(command: ParsedCommand) -> List[str]:
    suggestions = []
    if command.leverage is None and not command.reduce_only:
        suggestions.append(LEVERAGE_HINT)
    if command.stop_loss_percent is None and command.take_profit_percent is None and not command.reduce_only:
        suggestions.append(RISK_HINT)
    return suggestions


def assemble(action: Action, values: Dict[str, object], errors: List[str]) -> ParseResult:
    if errors:
        return ParseResult.fail(errors, [USAGE_HINT])
    size, size_type = values["size"]
    try:
        command = ParsedCommand(
            action=action,
            symbol=values["symbol"],
            size=size,
            size_type=size_type,
            order_type=values["order_type"],
            reduce_only=values["reduce_only"],
            leverage=values["leverage"],
            stop_loss_percent=values[STOP_LOSS.field],
            take_profit_percent=values[TAKE_PROFIT.field],
            trailing_stop_percent=values[TRAILING_STOP.field],
        )
    except ValidationError as e:
        return ParseResult.fail([f"Invalid command: {err['msg']}" for err in e.errors()], [USAGE_HINT])
    return ParseResult.ok(command, build_suggestions(command))


def _parse(text) -> ParseResult:
    try:
        stream = tokenize(normalize(text))
        action = extract_action(stream)
    except CommandSyntaxError as e:
        return ParseResult.fail([e.message], [USAGE_HINT])
    values, errors = validate_fields(stream)
    return assemble(action, values, errors)


def parse_trade_command(text) -> ParseResult:
    """Парсит текстовую торговую команду. Всегда возвращает ParseResult, никогда не бросает исключение."""
    try:
        return _parse(text)
    except CommandParseError as e:
        return ParseResult.fail([e.message], [USAGE_HINT])
    except Exception as e:
        return ParseResult.fail([f"Parsing failed: {e}"], [USAGE_HINT])


def is_valid_symbol(symbol: str) -> bool:
    """Checks an already-normalized pair such as BTCUSDT."""
    if not isinstance(symbol, str) or not SYMBOL_RE.match(symbol) or symbol != symbol.upper():
        return False
    base, quote = split_quote(symbol)
    return quote is not None and MIN_BASE_LEN <= len(base) <= MAX_SYMBOL_LEN


def generate_examples() -> List[str]:
    return [
        "/buy BTCUSDT 100u x5 sl1% tp3%",
        "/sell ETHUSDT 0.25 x3 reduce",
        "/buy SOLUSDT mkt 250u tp2%",
        "/sell ADAUSDT limit 1000u x2 sl2% tp5%",
        "/buy LINKUSDT 50u x10 trail1%",
    ]
