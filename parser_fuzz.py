# file: parser_fuzz.py
import json
import os
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from command_parser import parse_trade_command

# --- Constants ---
REPORT_PATH = "artifacts/parser_fuzz_results.json"
RANDOM_CASES = 50
HEALTHY_PASS_RATE = 90.0

FUZZ_ACTIONS = ["/buy", "/sell", "/trade", "buy", ""]
FUZZ_SYMBOLS = ["BTCUSDT", "ETHUSDT", "SOLUSDT", "???", "", "A" * 20]
FUZZ_SIZES = ["100u", "0.25", "-50u", "0u", "abcu", "999999999u"]
FUZZ_LEVERAGES = ["x5", "x0", "x-1", "x200", "x1.5", ""]


class FuzzCase(BaseModel):
    input: str
    expected: str  # 'PASS' | 'FAIL'
    description: str
    expected_fields: Dict[str, Any] = {}


class FuzzOutcome(BaseModel):
    input: str
    expected: str
    actual: str  # 'PASS' | 'FAIL' | 'ERROR'
    status: str
    errors: Optional[List[str]] = None


def _valid(text, description, **fields):
    return FuzzCase(input=text, expected="PASS", description=description, expected_fields=fields)


def _invalid(text, description):
    return FuzzCase(input=text, expected="FAIL", description=description)


FIXED_CASES = [
    _valid("/buy BTCUSDT 100u x5 sl1% tp3%", "Standard buy with quote size and risk management",
           action="BUY", symbol="BTCUSDT", size="100", size_type="QUOTE", leverage=5,
           stop_loss_percent="1", take_profit_percent="3"),
    _valid("/sell ETHUSDT 0.25 x3 reduce", "Sell with base size and reduce-only",
           action="SELL", symbol="ETHUSDT", size="0.25", size_type="BASE", leverage=3, reduce_only=True),
    _valid("/buy SOLUSDT mkt 250u tp2% trail1%", "Market buy with trailing stop",
           size="250", size_type="QUOTE", take_profit_percent="2", trailing_stop_percent="1"),
    _valid("/sell ADAUSDT limit 1000u x2 sl2% tp5%", "Limit sell", order_type="LIMIT", leverage=2),
    _valid("/buy BTC 100u x5", "Short symbol gets USDT appended", symbol="BTCUSDT"),
    _valid("/sell BTCUSD 0.1 x2", "USD quote is kept", symbol="BTCUSD", size_type="BASE"),
    _valid("/buy BTCUSDT 100usdt x5", "Inline USDT unit", size_type="QUOTE"),
    _valid("/buy BTCUSDT 100 USDT x5", "Separate USDT unit", size="100", size_type="QUOTE"),
    _valid("/buy BTCUSDT 100u leverage 5", "Verbose leverage", leverage=5),
    _valid("/buy BTCUSDT 100u 5x", "Suffix leverage", leverage=5),
    _valid("/buy BTCUSDT 100u x5 stop loss 2% take profit 5%", "Verbose SL/TP",
           stop_loss_percent="2", take_profit_percent="5"),
    _valid("/buy BTCUSDT 100u x5 sl=1.5 tp=3.5", "Equals SL/TP", stop_loss_percent="1.5", take_profit_percent="3.5"),
    _valid("/buy BTCUSDT 0.001 x1", "Minimum size with 1x", size="0.001", leverage=1),
    _valid("/sell BTCUSDT 10000u x20 sl0.1% tp0.2%", "Fractional percentages",
           size="10000", stop_loss_percent="0.1", take_profit_percent="0.2"),
    _invalid("/buy", "Missing symbol and size"),
    _invalid("/buy BTCUSDT", "Missing size"),
    _invalid("/trade BTCUSDT 100u", "Unknown verb"),
    _invalid("/buy ??? 100u x5", "Special characters in symbol"),
    _invalid("/buy A 100u x5", "Symbol too short"),
    _invalid("/buy VERYLONGSYMBOLNAME 100u x5", "Symbol too long"),
    _invalid("/buy BTCUSDT -100u x5", "Negative size"),
    _invalid("/buy BTCUSDT 0u x5", "Zero size"),
    _invalid("/buy BTCUSDT abcu x5", "Non-numeric size"),
    _invalid("/buy BTCUSDT 100u x0", "Zero leverage"),
    _invalid("/buy BTCUSDT 100u x-5", "Negative leverage"),
    _invalid("/buy BTCUSDT 100u x200", "Leverage over 125"),
    _invalid("/buy BTCUSDT 100u x5.5", "Fractional leverage"),
    _valid("/buy BTCUSDT 100u xmas x5", "Decoration word starting with x is ignored", leverage=5),
    _valid("/buy STOP 100u", "Symbol spelling a keyword keeps its size", symbol="STOPUSDT", size="100"),
    _invalid("/buy BTCUSDT 100u x5 sl-1%", "Negative stop loss"),
    _invalid("/buy BTCUSDT 100u x5 tp0%", "Zero take profit"),
    _invalid("/buy BTCUSDT 100u x5 sl200%", "Stop loss over 100%"),
    _invalid("buy BTCUSDT 100u x5", "Missing slash"),
    _invalid("/BUY BTCUSDT 100u x5", "Uppercase verb"),
    _invalid("/buy / / /", "Slashes only"),
    _invalid("/buy     ", "Whitespace after verb"),
    _invalid("/buy BTCUSDT 100€ x5", "Non-ASCII currency sign"),
    _invalid("/buy BTCUSDT 100u x5 sl1‰", "Per-mille sign instead of percent"),
    _invalid("/buy BTCUSDT\u3000100u x5", "Ideographic space between tokens"),
    _invalid("/buy USDT 100u", "Quote asset without a base"),
    _invalid("/buy " + "A" * 1000 + " 100u x5", "Oversized input"),
    _invalid("/buy BTCUSDT " + "9" * 100 + "u x5", "Digit flood size"),
]


def random_cases(count: int, seed: Optional[int] = None) -> List[FuzzCase]:
    """
    Random combinations of good and bad parts.
    A case is expected to pass only when every part comes from the good set.
    """
    rng = random.Random(seed)
    cases = []
    for i in range(count):
        action = rng.choice(FUZZ_ACTIONS)
        symbol = rng.choice(FUZZ_SYMBOLS)
        size = rng.choice(FUZZ_SIZES)
        leverage = rng.choice(FUZZ_LEVERAGES)
        text = " ".join(part for part in (action, symbol, size, leverage) if part)

        all_good = (
            action in ("/buy", "/sell")
            and symbol in ("BTCUSDT", "ETHUSDT", "SOLUSDT")
            and size in ("100u", "0.25")
            and leverage in ("x5", "")
        )
        cases.append(FuzzCase(
            input=text,
            expected="PASS" if all_good else "FAIL",
            description=f"Random fuzz case {i + 1}: {text[:50]}",
        ))
    return cases


def run_case(case: FuzzCase) -> FuzzOutcome:
    try:
        result = parse_trade_command(case.input)
    except Exception as e:
        return FuzzOutcome(input=case.input, expected=case.expected, actual="ERROR", status="FAIL",
                           errors=[f"Exception: {e}"])

    actual = "PASS" if result.success else "FAIL"
    errors = None if result.success else result.errors
    status = "PASS" if actual == case.expected else "FAIL"

    if status == "PASS" and result.success and case.expected_fields:
        dumped = result.command.model_dump(mode="json")
        field_errors = [
            f"{name}: expected {want}, got {dumped.get(name)}"
            for name, want in case.expected_fields.items()
            if dumped.get(name) != want
        ]
        if field_errors:
            status = "FAIL"
            errors = field_errors

    return FuzzOutcome(input=case.input, expected=case.expected, actual=actual, status=status, errors=errors)


def summarize(outcomes: List[FuzzOutcome]) -> dict:
    total = len(outcomes)
    passed = sum(1 for o in outcomes if o.status == "PASS")
    failures = [o for o in outcomes if o.status == "FAIL"]
    false_positives = [o for o in failures if o.expected == "FAIL" and o.actual == "PASS"]
    false_negatives = [o for o in failures if o.expected == "PASS" and o.actual != "PASS"]
    exceptions = [o for o in failures if o.actual == "ERROR"]
    pass_rate = round(passed / total * 100, 1) if total else 0.0

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": {"total": total, "passed": passed, "failed": total - passed, "pass_rate": pass_rate},
        "failure_analysis": {
            "false_positives": len(false_positives),
            "false_negatives": len(false_negatives),
            "exceptions": len(exceptions),
        },
        "healthy": pass_rate >= HEALTHY_PASS_RATE and not exceptions,
        "results": [o.model_dump() for o in outcomes],
    }


def run_fuzz(random_count: int = RANDOM_CASES, seed: Optional[int] = None) -> dict:
    cases = FIXED_CASES + random_cases(random_count, seed)
    return summarize([run_case(case) for case in cases])


def save_report(report: dict, path: str = REPORT_PATH) -> str:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w") as f:
        json.dump(report, f, indent=2)
    return path


if __name__ == "__main__":
    report = run_fuzz()
    summary = report["summary"]
    analysis = report["failure_analysis"]
    print("--- PARSER FUZZ TEST RESULTS ---")
    print(f"Overall: {summary['passed']}/{summary['total']} ({summary['pass_rate']}%)")
    print(f"False positives: {analysis['false_positives']}")
    print(f"False negatives: {analysis['false_negatives']}")
    print(f"Exceptions: {analysis['exceptions']}")
    for outcome in report["results"]:
        if outcome["status"] == "FAIL":
            print(f"  FAIL: {outcome['input'][:60]!r} -> {outcome['errors']}")
    print(f"Report saved to: {save_report(report)}")
    print(f"PARSER HEALTH: {'HEALTHY' if report['healthy'] else 'NEEDS ATTENTION'}")
