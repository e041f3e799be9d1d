import json
import math
import time
from datetime import datetime, timezone
from typing import Any, Mapping

from weather_web.dto.reading import ReadingCreate
from weather_web.exceptions import ValidationError

# Field names accepted for each reading attribute, in order of precedence.
# The first non-null value wins.
TIMESTAMP_FIELDS = ("unix_timestamp", "unix", "time")
PRESSURE_FIELDS = ("pressure", "gasval", "gas_value", "bar")
TEMPERATURE_FIELDS = ("temperature",)
HUMIDITY_FIELDS = ("humidity",)
LIGHT_FIELDS = ("light_level", "light")
BATTERY_FIELDS = ("battery_level", "battery")
SIGNAL_FIELDS = ("signal_strength", "rssi")

# Batch entries carrying this id are placeholders and get skipped.
NO_SENDER = -1

# Integer columns are signed 64-bit
MAX_INTEGER = 2**63 - 1


def canonical_sender_id(value: Any) -> str:
    """
    Return the single string form used to key a sender.

    Integral numbers (including floats like 3.0) become their decimal
    string, strings are stripped. Anything else is rejected.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Sender ID is required")

    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Invalid sender ID: {value!r}")
        value = int(value)

    if isinstance(value, int):
        return str(value)

    if isinstance(value, str) and value.strip():
        return value.strip()

    raise ValidationError("Sender ID is required")


def is_skipped_sender(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == NO_SENDER
    if isinstance(value, str):
        return value.strip() == str(NO_SENDER)
    return False


def _first_present(payload: Mapping[str, Any], fields: tuple[str, ...]) -> Any:
    for field in fields:
        value = payload.get(field)
        if value is not None:
            return value
    return None


def _to_number(field: str, value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number, got {value!r}")
    else:
        raise ValidationError(f"{field} must be a number")

    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number")
    return number


def _to_integer(field: str, value: Any) -> int | None:
    number = _to_number(field, value)
    if number is None:
        return None
    if abs(number) > MAX_INTEGER:
        raise ValidationError(f"{field} is out of range")
    return int(number)


def _to_timestamp(value: Any) -> int:
    if value is None:
        return int(time.time())

    number: float | None
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                raise ValidationError(f"Invalid timestamp: {value!r}")
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            number = parsed.timestamp()
    else:
        number = _to_number("timestamp", value)

    if (
        number is None
        or not math.isfinite(number)
        or number < 0
        or number > MAX_INTEGER
    ):
        raise ValidationError(f"Invalid timestamp: {value!r}")
    return int(number)


def normalize_payload(payload: Mapping[str, Any]) -> ReadingCreate:
    """
    Fold a loosely typed sensor payload into a `ReadingCreate`.

    Legacy field names are resolved through the precedence lists above and
    the payload itself is kept verbatim in `raw_data_json`. A missing
    timestamp is stamped with the current time.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Reading must be a JSON object")

    return ReadingCreate(
        temperature=_to_number(
            "temperature", _first_present(payload, TEMPERATURE_FIELDS)
        ),
        humidity=_to_number(
            "humidity", _first_present(payload, HUMIDITY_FIELDS)
        ),
        pressure=_to_number(
            "pressure", _first_present(payload, PRESSURE_FIELDS)
        ),
        light_level=_to_number(
            "light_level", _first_present(payload, LIGHT_FIELDS)
        ),
        battery_level=_to_number(
            "battery_level", _first_present(payload, BATTERY_FIELDS)
        ),
        signal_strength=_to_integer(
            "signal_strength", _first_present(payload, SIGNAL_FIELDS)
        ),
        unix_timestamp=_to_timestamp(
            _first_present(payload, TIMESTAMP_FIELDS)
        ),
        raw_data_json=json.dumps(payload, default=str),
    )
