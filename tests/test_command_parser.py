import pytest

from command_parser import (
    MAX_INPUT_LENGTH,
    canonical_decimal,
    extract_leverage,
    extract_risk_parameter,
    extract_size,
    generate_examples,
    is_valid_symbol,
    normalize,
    parse_trade_command,
    tokenize,
    STOP_LOSS,
    TRAILING_STOP,
)
from exceptions import CommandSyntaxError
from models import Action, OrderType, SizeType


# === Normalizer & tokenizer ===

def test_normalize_collapses_whitespace_and_keeps_case():
    assert normalize("  /buy   BTCUSDT\t100u \n x5 ") == "/buy BTCUSDT 100u x5"


@pytest.mark.parametrize("raw", ["", "   ", "\n\t"])
def test_normalize_rejects_empty(raw):
    with pytest.raises(CommandSyntaxError):
        normalize(raw)


def test_normalize_rejects_oversized_input_before_anything_else():
    with pytest.raises(CommandSyntaxError, match="too long"):
        normalize("/buy BTCUSDT 100u " + "€" * MAX_INPUT_LENGTH)


@pytest.mark.parametrize("raw", [
    "/buy BTCUSDT 100€",
    "/buy BTCUSDT 100u sl1‰",
    "/buy BTC; DROP TABLE",
    "/buy ＢＴＣ 1",
    "/buy BTCUSDT\u3000100u",
    "/buy\u00a0BTCUSDT 100u",
    "/buy BTCUSDT\u2003100u x5",
    "/buy BTCUSDT 100u\u2028x5",
    "/buy BTCUSDT 100u\x85x5",
    "/buy BTCUSDT\x1f100u",
])
def test_normalize_rejects_foreign_characters(raw):
    with pytest.raises(CommandSyntaxError, match="Unsupported character"):
        normalize(raw)


def test_tokenizer_is_restartable():
    stream = tokenize("/buy BTCUSDT 100u x5")
    first_pass = [t.value for t in stream]
    second_pass = [t.value for t in stream]
    assert first_pass == second_pass == ["/buy", "BTCUSDT", "100u", "x5"]
    assert [t.index for t in stream] == [0, 1, 2, 3]


# === Canonical commands ===

def test_full_command_is_canonicalized(parse_ok):
    cmd = parse_ok("/buy BTC 100u x5")
    assert cmd.action == Action.BUY
    assert cmd.symbol == "BTCUSDT"
    assert cmd.size == "100"
    assert cmd.size_type == SizeType.QUOTE
    assert cmd.leverage == 5
    assert cmd.order_type == OrderType.MARKET
    assert cmd.reduce_only is False
    assert cmd.stop_loss_percent is None


def test_standard_command_with_risk(parse_ok):
    cmd = parse_ok("/buy BTCUSDT 100u x5 sl1% tp3%")
    assert (cmd.stop_loss_percent, cmd.take_profit_percent) == ("1", "3")


@pytest.mark.parametrize("symbol, expected", [
    ("BTCUSD", "BTCUSD"),
    ("btcusdt", "BTCUSDT"),
    ("eth", "ETHUSDT"),
    ("ETHBUSD", "ETHBUSD"),
    ("1000SHIB", "1000SHIBUSDT"),
])
def test_symbol_quote_suffix(parse_ok, symbol, expected):
    assert parse_ok(f"/sell {symbol} 0.1 x2").symbol == expected


def test_sell_with_base_size_and_reduce(parse_ok):
    cmd = parse_ok("/sell ETHUSDT 0.25 x3 reduce")
    assert cmd.action == Action.SELL
    assert cmd.size == "0.25"
    assert cmd.size_type == SizeType.BASE
    assert cmd.reduce_only is True


@pytest.mark.parametrize("text", [
    "/buy BTCUSDT 100u",
    "/buy BTCUSDT 100U",
    "/buy BTCUSDT 100usdt",
    "/buy BTCUSDT 100USDT",
    "/buy BTCUSDT 100 USDT",
    "/buy BTCUSDT 100 usdt",
])
def test_quote_size_spellings(parse_ok, text):
    cmd = parse_ok(text)
    assert cmd.size == "100"
    assert cmd.size_type == SizeType.QUOTE


def test_size_keeps_exact_decimal_text(parse_ok):
    assert parse_ok("/buy BTCUSDT 0.10").size == "0.10"
    assert parse_ok("/buy BTCUSDT 007.5u").size == "7.5"


def test_size_can_come_after_modifiers(parse_ok):
    cmd = parse_ok("/buy SOLUSDT mkt 250u tp2% trail1%")
    assert cmd.size == "250"
    assert cmd.trailing_stop_percent == "1"
    assert cmd.take_profit_percent == "2"


def test_modifier_arguments_are_not_taken_as_size(parse_ok):
    cmd = parse_ok("/buy BTCUSDT leverage 5 sl 2 0.5")
    assert cmd.leverage == 5
    assert cmd.stop_loss_percent == "2"
    assert cmd.size == "0.5"
    assert cmd.size_type == SizeType.BASE


# === Leverage ===

@pytest.mark.parametrize("text", [
    "/buy BTCUSDT 100u leverage 5",
    "/buy BTCUSDT 100u x5",
    "/buy BTCUSDT 100u 5x",
    "/buy BTCUSDT 100u X5",
    "/buy BTCUSDT 100u LEVERAGE 5",
])
def test_leverage_synonyms_are_equivalent(parse_ok, text):
    assert parse_ok(text).leverage == 5


def test_leverage_first_match_wins():
    field = extract_leverage(tokenize("/buy BTCUSDT 100u 3x x7"))
    assert field.value == "3"
    assert field.source_text == "3x"


def test_leverage_absent_is_not_an_error(parse_ok):
    assert parse_ok("/buy BTCUSDT 100u").leverage is None


@pytest.mark.parametrize("token", ["x0", "x-5", "x200", "x126", "x5.5", "0x", "5.5x", "leverage 0", "leverage abc", "leverage"])
def test_leverage_range_rejection(parse_fail, token):
    errors = parse_fail(f"/buy BTCUSDT 100u {token}")
    assert len(errors) == 1
    assert "leverage" in errors[0]
    assert token in errors[0]


@pytest.mark.parametrize("text", ["/buy BTCUSDT 100u xmas x5", "/buy BTCUSDT 100u xabc 5x"])
def test_words_starting_with_x_are_not_leverage(parse_ok, text):
    assert parse_ok(text).leverage == 5


def test_non_numeric_x_word_alone_leaves_leverage_unset(parse_ok):
    assert parse_ok("/buy BTCUSDT 100u xabc").leverage is None


@pytest.mark.parametrize("value", [1, 125])
def test_leverage_bounds_are_inclusive(parse_ok, value):
    assert parse_ok(f"/buy BTCUSDT 100u x{value}").leverage == value


# === Risk parameters ===

@pytest.mark.parametrize("text, sl, tp", [
    ("/buy BTCUSDT 100u sl1% tp3%", "1", "3"),
    ("/buy BTCUSDT 100u sl=1.5 tp=3.5", "1.5", "3.5"),
    ("/buy BTCUSDT 100u stop loss 2% take profit 5%", "2", "5"),
    ("/buy BTCUSDT 100u sl 2% tp 4%", "2", "4"),
    ("/buy BTCUSDT 100u SL1% TP=2%", "1", "2"),
    ("/sell BTCUSDT 10000u x20 sl0.1% tp0.2%", "0.1", "0.2"),
])
def test_risk_forms(parse_ok, text, sl, tp):
    cmd = parse_ok(text)
    assert cmd.stop_loss_percent == sl
    assert cmd.take_profit_percent == tp


@pytest.mark.parametrize("text", [
    "/buy BTCUSDT 100u trail1%",
    "/buy BTCUSDT 100u trailing1%",
    "/buy BTCUSDT 100u trail=1",
    "/buy BTCUSDT 100u trailing stop 1%",
    "/buy BTCUSDT 100u trail 1%",
])
def test_trailing_forms(parse_ok, text):
    cmd = parse_ok(text)
    assert cmd.trailing_stop_percent == "1"
    assert cmd.stop_loss_percent is None


def test_compact_form_takes_precedence_over_later_forms():
    field = extract_risk_parameter(tokenize("/buy BTCUSDT 100u sl=4 sl2%"), STOP_LOSS)
    assert field.value == "2"


def test_parameters_may_use_different_forms(parse_ok):
    cmd = parse_ok("/buy BTCUSDT 100u sl=1 take profit 3% trail 0.5%")
    assert (cmd.stop_loss_percent, cmd.take_profit_percent, cmd.trailing_stop_percent) == ("1", "3", "0.5")


def test_trailing_stop_does_not_steal_stop_loss():
    field = extract_risk_parameter(tokenize("/buy BTCUSDT 100u stop loss 2%"), TRAILING_STOP)
    assert not field.is_present


@pytest.mark.parametrize("token, label", [
    ("sl-1%", "stop loss"),
    ("sl0%", "stop loss"),
    ("sl200%", "stop loss"),
    ("sl100%", "stop loss"),
    ("tp0%", "take profit"),
    ("tp=abc", "take profit"),
    ("trail=", "trailing stop"),
    ("sl1.2.3%", "stop loss"),
])
def test_risk_range_rejection(parse_fail, token, label):
    errors = parse_fail(f"/buy BTCUSDT 100u x5 {token}")
    assert len(errors) == 1
    assert label in errors[0]


# === Order type & flags ===

@pytest.mark.parametrize("text, expected", [
    ("/buy BTCUSDT 100u", OrderType.MARKET),
    ("/buy BTCUSDT 100u mkt", OrderType.MARKET),
    ("/buy BTCUSDT 100u market", OrderType.MARKET),
    ("/buy BTCUSDT limit 100u", OrderType.LIMIT),
    ("/buy BTCUSDT 100u LMT", OrderType.LIMIT),
])
def test_order_type(parse_ok, text, expected):
    assert parse_ok(text).order_type == expected


def test_conflicting_order_types_are_rejected(parse_fail):
    errors = parse_fail("/buy BTCUSDT 100u market limit")
    assert errors == ["Conflicting order types: 'market limit'"]


@pytest.mark.parametrize("flag", ["reduce", "REDUCE", "reduceonly", "reduce-only"])
def test_reduce_only_flag(parse_ok, flag):
    assert parse_ok(f"/sell ETHUSDT 0.25 {flag}").reduce_only is True


def test_unknown_tokens_are_ignored(parse_ok):
    cmd = parse_ok("/buy BTCUSDT please 100u now x5 thanks")
    assert cmd.size == "100"
    assert cmd.leverage == 5


# === Syntax errors ===

@pytest.mark.parametrize("text", ["/BUY BTCUSDT 100u x5", "/Buy BTCUSDT 100u", "buy BTCUSDT 100u x5", "/trade BTCUSDT 100u"])
def test_only_exact_lowercase_verbs_are_accepted(parse_fail, text):
    errors = parse_fail(text)
    assert len(errors) == 1
    assert "Unrecognized command" in errors[0]


# === Missing & invalid required fields ===

def test_missing_symbol_and_size_are_both_reported(parse_fail):
    assert parse_fail("/buy") == [
        "Missing symbol (e.g. BTCUSDT)",
        "Missing size (e.g. 100u for quote or 0.25 for base)",
    ]


def test_whitespace_after_verb(parse_fail):
    assert len(parse_fail("/buy     ")) == 2


def test_missing_size(parse_fail):
    errors = parse_fail("/buy BTCUSDT x5")
    assert errors == ["Missing size (e.g. 100u for quote or 0.25 for base)"]


@pytest.mark.parametrize("text, symbol, size", [
    ("/buy STOP 100u", "STOPUSDT", "100"),
    ("/sell LOSS 0.5", "LOSSUSDT", "0.5"),
    ("/buy TRAIL 25u x3", "TRAILUSDT", "25"),
])
def test_symbol_spelling_a_keyword_keeps_its_size(parse_ok, text, symbol, size):
    cmd = parse_ok(text)
    assert cmd.symbol == symbol
    assert cmd.size == size


def test_ideographic_space_between_tokens_is_rejected(parse_fail):
    errors = parse_fail("/buy BTCUSDT　100u x5")
    assert len(errors) == 1
    assert "Unsupported character" in errors[0]


@pytest.mark.parametrize("symbol, message", [
    ("A", "Invalid symbol length"),
    ("VERYLONGSYMBOLNAME", "Invalid symbol length"),
    ("/", "Invalid symbol"),
    ("BTC-USDT", "Invalid symbol"),
    ("12345", "must contain letters"),
    ("USDT", "missing base asset"),
    ("USD", "missing base asset"),
    ("busd", "missing base asset"),
    ("XUSDT", "missing base asset"),
])
def test_invalid_symbols(parse_fail, symbol, message):
    errors = parse_fail(f"/buy {symbol} 100u x5")
    assert message in errors[0]


@pytest.mark.parametrize("size, message", [
    ("-100u", "must be positive"),
    ("0u", "greater than zero"),
    ("0.000", "greater than zero"),
    ("1.2.3", "Invalid size format"),
    ("100usd", "Invalid size format"),
    ("10000000", "must be below"),
    ("9" * 100 + "u", "must be below"),
])
def test_invalid_sizes(parse_fail, size, message):
    errors = parse_fail(f"/buy BTCUSDT {size} x5")
    assert len(errors) == 1
    assert message in errors[0]


def test_non_numeric_size_counts_as_missing(parse_fail):
    assert "Missing size" in parse_fail("/buy BTCUSDT abcu x5")[0]


def test_size_field_records_source_tokens():
    field = extract_size(tokenize("/buy BTCUSDT 100 USDT"))
    assert field.value == ("100", SizeType.QUOTE)
    assert field.source_text == "100 USDT"


# === Accumulation ===

def test_errors_are_accumulated_in_field_order(parse_fail):
    errors = parse_fail("/buy A -5u x200 sl0% tp150% trail=abc market limit")
    assert len(errors) == 7
    assert "symbol" in errors[0]
    assert "size" in errors[1]
    assert "leverage" in errors[2]
    assert "stop loss" in errors[3]
    assert "take profit" in errors[4]
    assert "trailing stop" in errors[5]
    assert "order types" in errors[6]


def test_invalid_size_and_leverage_give_two_errors(parse_fail):
    errors = parse_fail("/buy BTCUSDT 0u x0")
    assert len(errors) == 2
    assert errors[0] != errors[1]


# === Totality & determinism ===

@pytest.mark.parametrize("text", [
    "",
    "   ",
    "/buy " + "A" * 100000,
    "A" * 100000,
    "\x00\x01\x02",
    "/buy \ud800 1",
    b"/buy BTCUSDT 100u x5 \xff\xfe",
    None,
    12345,
    "/buy / / /",
    "/buy BTCUSDT 100u x5 sl1% tp3%'; DROP TABLE orders; --",
    "/buy BTCUSDT " + "9" * 240,
    "/sell x x x x x x",
    "/buy - - - -",
    "/buy BTCUSDT .5",
    "/buy BTCUSDT = % . -",
])
def test_parser_is_total(text):
    result = parse_trade_command(text)
    assert result.success in (True, False)
    if not result.success:
        assert result.errors
        assert result.command is None


def test_bytes_input_is_decoded(parse_ok):
    assert parse_ok(b"/buy BTCUSDT 100u x5").leverage == 5


def test_parser_is_deterministic():
    for text in ["/buy BTCUSDT 100u x5 sl1% tp3%", "/buy A 0u x0", "/BUY nope"]:
        assert parse_trade_command(text) == parse_trade_command(text)


# === Suggestions & helpers ===

def test_suggestions_on_bare_command():
    result = parse_trade_command("/buy BTCUSDT 100u")
    assert result.suggestions == [
        "Consider adding leverage (e.g., x5)",
        "Consider adding risk management (sl1% tp3%)",
    ]


def test_no_suggestions_for_reduce_only():
    assert parse_trade_command("/sell BTCUSDT 0.5 reduce").suggestions == []


def test_failure_carries_usage_hint():
    assert parse_trade_command("/buy").suggestions == ["Try: /buy BTCUSDT 100u x5 sl1% tp3%"]


def test_generated_examples_all_parse():
    for example in generate_examples():
        assert parse_trade_command(example).success, example


@pytest.mark.parametrize("symbol, expected", [
    ("BTCUSDT", True),
    ("BTCUSD", True),
    ("ETHBUSD", True),
    ("BTC", False),
    ("btcusdt", False),
    ("XUSDT", False),
    ("BTC-USDT", False),
])
def test_is_valid_symbol(symbol, expected):
    assert is_valid_symbol(symbol) is expected


@pytest.mark.parametrize("text, expected", [("007", "7"), ("0.10", "0.10"), ("000.5", "0.5"), ("0", "0")])
def test_canonical_decimal(text, expected):
    assert canonical_decimal(text) == expected
