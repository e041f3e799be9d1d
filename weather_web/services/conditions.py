import math
from enum import Enum


class AlertType(str, Enum):
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PRESSURE = "pressure"
    BATTERY = "battery"


class AlertCondition(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    AT_OR_ABOVE = "at_or_above"
    AT_OR_BELOW = "at_or_below"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"


class StatType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


EQUALITY_TOLERANCE = 1e-6

# Reading attribute watched by each alert type
ALERT_FIELD_MAP = {
    AlertType.TEMPERATURE: "temperature",
    AlertType.HUMIDITY: "humidity",
    AlertType.PRESSURE: "pressure",
    AlertType.BATTERY: "battery_level",
}

# Symbol encodings still sent by older clients
CONDITION_SYMBOL_MAP = {
    ">": AlertCondition.ABOVE,
    "<": AlertCondition.BELOW,
    ">=": AlertCondition.AT_OR_ABOVE,
    "<=": AlertCondition.AT_OR_BELOW,
    "==": AlertCondition.EQUALS,
    "!=": AlertCondition.NOT_EQUALS,
}


def parse_alert_type(value: object) -> AlertType | None:
    if not isinstance(value, str):
        return None
    try:
        return AlertType(value.strip().lower())
    except ValueError:
        return None


def parse_condition(value: object) -> AlertCondition | None:
    """
    Translate a condition in either its word or symbol form to the
    canonical `AlertCondition`. Returns None for anything else.
    """
    if not isinstance(value, str):
        return None
    value = value.strip()
    if value in CONDITION_SYMBOL_MAP:
        return CONDITION_SYMBOL_MAP[value]
    try:
        return AlertCondition(value.lower())
    except ValueError:
        return None


def condition_met(
    condition: AlertCondition, value: float, threshold: float
) -> bool:
    if condition is AlertCondition.ABOVE:
        return value > threshold
    if condition is AlertCondition.BELOW:
        return value < threshold
    if condition is AlertCondition.AT_OR_ABOVE:
        return value >= threshold
    if condition is AlertCondition.AT_OR_BELOW:
        return value <= threshold

    equal = math.isclose(value, threshold, abs_tol=EQUALITY_TOLERANCE)
    if condition is AlertCondition.EQUALS:
        return equal
    return not equal
