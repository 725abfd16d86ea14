# file: command_replies.py
from models import ParseResult, ParsedCommand, SizeType


def describe_command(command: ParsedCommand) -> str:
    """Однострочное описание команды для подтверждения в чате."""
    unit = "USDT" if command.size_type == SizeType.QUOTE else command.symbol
    parts = [f"{command.action.value} {command.symbol}", f"{command.size} {unit}", command.order_type.value]
    if command.leverage is not None:
        parts.append(f"{command.leverage}x")
    if command.stop_loss_percent is not None:
        parts.append(f"SL {command.stop_loss_percent}%")
    if command.take_profit_percent is not None:
        parts.append(f"TP {command.take_profit_percent}%")
    if command.trailing_stop_percent is not None:
        parts.append(f"trail {command.trailing_stop_percent}%")
    if command.reduce_only:
        parts.append("reduce-only")
    return " | ".join(parts)


def format_parse_reply(result: ParseResult) -> str:
    """
    Builds the chat reply for a parse result.
    Errors are shown verbatim, one bullet each, followed by the suggestions.
    """
    if result.success:
        lines = ["Command accepted", "", describe_command(result.command)]
        header = "Tips:"
    else:
        lines = ["Command Parse Error", ""]
        lines.extend(f"• {err}" for err in result.errors)
        header = "Suggestions:"

    if result.suggestions:
        lines.append("")
        lines.append(header)
        lines.extend(f"• {tip}" for tip in result.suggestions)
    return "\n".join(lines)
