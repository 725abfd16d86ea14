# file: trade_logger.py
import json
from datetime import datetime, timezone

from db_utils import get_db_connection
from models import ParseResult


def log_event(event_type: str, payload: dict):
    """
    Универсальная функция для логирования любого события в системе.
    Записывает событие в таблицу 'trade_log'.

    Args:
        event_type (str): Тип события (например, 'COMMAND_RECEIVED', 'COMMAND_REJECTED').
        payload (dict): Словарь с дополнительными данными о событии.
    """
    conn = None
    try:
        conn = get_db_connection()

        # Values are stringified so Decimals, enums and lists serialize the same way everywhere.
        serializable_payload = {k: str(v) for k, v in payload.items()}
        payload_str = json.dumps(serializable_payload)

        record = {
            "timestamp_utc": datetime.now(timezone.utc).isoformat(timespec='microseconds'),
            "event_type": event_type,
            "payload_json": payload_str
        }

        with conn:
            conn.execute(
                "INSERT INTO trade_log (timestamp_utc, event_type, payload_json) VALUES (:timestamp_utc, :event_type, :payload_json)",
                record
            )

        print(f"[LOG] Event: {event_type} | Payload: {payload}")

    except Exception as e:
        # Logging must never take the request down with it.
        print(f"[LOGGING_ERROR] Failed to log event '{event_type}'. Error: {e}")
    finally:
        if conn is not None:
            conn.close()


def log_command_received(text: str):
    """Хелпер для логирования входящей команды."""
    log_event("COMMAND_RECEIVED", payload={"text": text})


def log_parse_result(text: str, result: ParseResult):
    """
    Логирует результат разбора команды.
    Тип события определяется по флагу success.
    """
    if result.success:
        payload = result.command.model_dump(mode="json")
        payload["text"] = text
        log_event("COMMAND_PARSED", payload=payload)
    else:
        log_event("COMMAND_REJECTED", payload={"text": text, "errors": result.errors})
