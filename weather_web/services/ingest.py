import logging
from typing import Any, List, Mapping

from weather_web.exceptions import StorageError, ValidationError
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.alert import AlertRuleDTO
from weather_web.dto.ingest import (
    BatchEntryAlerts,
    BatchEntryError,
    BatchResult,
    IngestResult,
)
from weather_web.dto.reading import ReadingDTO
from weather_web.services.alert import evaluate_alerts
from weather_web.services.event_log import LogLevel, log_event
from weather_web.services.normalize import (
    canonical_sender_id,
    is_skipped_sender,
    normalize_payload,
)
from weather_web.services.reading import insert_reading

log = logging.getLogger("weather_web.ingest")


def _alerts_metadata(alerts: List[AlertRuleDTO]) -> dict[str, Any]:
    return {"alerts": [a.model_dump(mode="json") for a in alerts]}


async def _evaluate_safely(
    db: DatabaseSessionManager, sender_id: str, reading: ReadingDTO
) -> List[AlertRuleDTO]:
    try:
        return await evaluate_alerts(db, sender_id, reading)
    except Exception as e:
        log.exception(f"Alert evaluation failed for sender {sender_id}")
        await log_event(
            db, LogLevel.ERROR, "alert_evaluation_failed", str(e), sender_id
        )
        return []


async def _store_and_evaluate(
    db: DatabaseSessionManager, sender_id: str, payload: Mapping[str, Any]
) -> IngestResult:
    values = normalize_payload(payload)

    name = payload.get("name")
    reading, created = await insert_reading(
        db,
        sender_id,
        values,
        sender_name=name if isinstance(name, str) else None,
    )

    if created:
        await log_event(
            db,
            LogLevel.INFO,
            "sender_created",
            f"New sender registered: {sender_id}",
            sender_id,
        )

    alerts = await _evaluate_safely(db, sender_id, reading)
    return IngestResult(
        row_id=reading.id, reading=reading, triggered_alerts=alerts
    )


async def ingest(
    db: DatabaseSessionManager, sender_id: Any, payload: Mapping[str, Any]
) -> IngestResult:
    """
    Validate, store and evaluate alerts for a single reading.

    Raises `ValidationError` before anything is written when the sender ID
    or a channel value is malformed, and `StorageError` when the write
    fails. Alert evaluation problems never fail the ingest.
    """
    sender_key = canonical_sender_id(sender_id)

    try:
        result = await _store_and_evaluate(db, sender_key, payload)
    except StorageError as e:
        await log_event(
            db, LogLevel.ERROR, "data_insert_failed", str(e), sender_key
        )
        raise

    if result.triggered_alerts:
        count = len(result.triggered_alerts)
        await log_event(
            db,
            LogLevel.WARNING,
            "alert_triggered",
            f"{count} alert(s) triggered",
            sender_key,
            _alerts_metadata(result.triggered_alerts),
        )

    return result


async def ingest_batch(db: DatabaseSessionManager, entries: Any) -> BatchResult:
    """
    Ingest a list of readings, each carrying its sender under `id`.

    Entries are independent: a failing entry is reported in `errors` and
    the rest are still stored. Entries without an id, or with the
    placeholder id -1, are skipped without being reported.
    """
    if not isinstance(entries, list):
        raise ValidationError("Request body must be an array")
    if len(entries) == 0:
        raise ValidationError("Empty array provided")

    result = BatchResult(total=len(entries))

    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            result.errors.append(
                BatchEntryError(index=index, error="Entry must be an object")
            )
            await log_event(
                db,
                LogLevel.ERROR,
                "batch_entry_failed",
                f"Entry {index} is not an object",
            )
            continue

        raw_id = entry.get("id")
        if is_skipped_sender(raw_id):
            continue

        sender_key: str | None = None
        try:
            sender_key = canonical_sender_id(raw_id)
            outcome = await _store_and_evaluate(db, sender_key, entry)
        except (ValidationError, StorageError) as e:
            log.warning(f"Batch entry {index} rejected: {e}")
            result.errors.append(
                BatchEntryError(index=index, sender_id=sender_key, error=str(e))
            )
            await log_event(
                db, LogLevel.ERROR, "batch_entry_failed", str(e), sender_key
            )
            continue
        except Exception as e:
            log.exception(f"Batch entry {index} failed unexpectedly")
            result.errors.append(
                BatchEntryError(index=index, sender_id=sender_key, error=str(e))
            )
            await log_event(
                db, LogLevel.ERROR, "batch_entry_failed", str(e), sender_key
            )
            continue

        result.processed += 1
        if outcome.triggered_alerts:
            result.alerts.append(
                BatchEntryAlerts(
                    index=index,
                    sender_id=sender_key,
                    alerts=outcome.triggered_alerts,
                )
            )

    if result.alerts:
        await log_event(
            db,
            LogLevel.WARNING,
            "batch_alerts_triggered",
            "Alerts triggered during batch import",
            metadata={
                "alerts": [a.model_dump(mode="json") for a in result.alerts]
            },
        )

    log.info(
        f"Batch processed {result.processed}/{result.total} entries, "
        f"{len(result.errors)} error(s)"
    )
    return result
