import logging
import math
from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import select

from weather_web.exceptions import NotFoundError, ValidationError
from weather_web.db.models import AlertRule, Sender
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.alert import AlertRuleDTO
from weather_web.dto.reading import ReadingDTO
from weather_web.services.conditions import (
    ALERT_FIELD_MAP,
    AlertType,
    AlertCondition,
    condition_met,
    parse_alert_type,
    parse_condition,
)

log = logging.getLogger("weather_web.alerts")


def _parse_threshold(value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise ValidationError("threshold_value must be a valid number")
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        raise ValidationError("threshold_value must be a valid number")
    if not math.isfinite(threshold):
        raise ValidationError("threshold_value must be a finite number")
    return threshold


async def create_alert(
    db: DatabaseSessionManager,
    sender_id: str,
    alert_type: Any,
    condition: Any,
    threshold_value: Any,
) -> AlertRuleDTO:
    """
    Create an active threshold rule for a sender.

    `condition` may be given in word form ("above") or symbol form (">")
    and is stored in word form. Everything is validated before the sender
    is looked up.
    """
    parsed_type = parse_alert_type(alert_type)
    if parsed_type is None:
        raise ValidationError(
            "Invalid alert_type. Must be one of: "
            + ", ".join(t.value for t in AlertType)
        )

    parsed_condition = parse_condition(condition)
    if parsed_condition is None:
        raise ValidationError(
            "Invalid condition. Must be one of: "
            + ", ".join(c.value for c in AlertCondition)
        )

    threshold = _parse_threshold(threshold_value)

    async with db.session() as session:
        stmt = select(Sender.id).where(Sender.sender_id == sender_id)
        if (await session.execute(stmt)).first() is None:
            raise NotFoundError(f"Sender not found: {sender_id}")

        rule = AlertRule(
            sender_id=sender_id,
            alert_type=parsed_type.value,
            condition=parsed_condition.value,
            threshold_value=threshold,
        )
        session.add(rule)
        await session.commit()
        return AlertRuleDTO.model_validate(rule)


async def list_alerts(
    db: DatabaseSessionManager, sender_id: str
) -> List[AlertRuleDTO]:
    async with db.session() as session:
        stmt = (
            select(AlertRule)
            .where(
                AlertRule.sender_id == sender_id,
                AlertRule.is_active.is_(True),
            )
            .order_by(AlertRule.id)
        )
        result = await session.execute(stmt)
        return [AlertRuleDTO.model_validate(a) for a in result.scalars().all()]


async def deactivate_alert(
    db: DatabaseSessionManager, alert_id: int
) -> AlertRuleDTO:
    async with db.session() as session:
        rule = await session.get(AlertRule, alert_id)
        if rule is None:
            raise NotFoundError(f"Alert not found: {alert_id}")
        rule.is_active = False
        await session.commit()
        return AlertRuleDTO.model_validate(rule)


async def evaluate_alerts(
    db: DatabaseSessionManager, sender_id: str, reading: ReadingDTO
) -> List[AlertRuleDTO]:
    """
    Evaluate every active rule of a sender against one reading.

    A rule whose channel is missing from the reading is skipped. Each rule
    that fires gets its `last_triggered` set; there is no cooldown, so a
    rule fires again for every qualifying reading.
    """
    fired: List[AlertRule] = []

    async with db.session() as session:
        stmt = select(AlertRule).where(
            AlertRule.sender_id == sender_id,
            AlertRule.is_active.is_(True),
        )
        rules = (await session.execute(stmt)).scalars().all()

        now = datetime.now(timezone.utc)
        for rule in rules:
            alert_type = parse_alert_type(rule.alert_type)
            condition = parse_condition(rule.condition)
            if alert_type is None or condition is None:
                log.warning(f"Skipping malformed alert rule {rule.id}")
                continue

            value = getattr(reading, ALERT_FIELD_MAP[alert_type])
            if value is None:
                continue

            if condition_met(condition, value, rule.threshold_value):
                rule.last_triggered = now
                fired.append(rule)

        if fired:
            await session.commit()

        return [AlertRuleDTO.model_validate(rule) for rule in fired]
