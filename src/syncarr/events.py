"""Structured log events emitted during a sync cycle.

Each helper logs a human-readable message and attaches the event name and
its fields to the record (``record.event`` / ``record.fields``) so a
formatter such as :class:`JsonEventFormatter` can emit them verbatim.
"""

import json
import logging
from datetime import datetime

logger = logging.getLogger("syncarr.events")


def _emit(level: int, event: str, message: str, **fields):
    logger.log(level, message, extra={"event": event, "fields": fields})


def _mb(size: int) -> float:
    return round(size / (1024 * 1024), 1)


def transfer_started(source_path: str, dest_path: str, size: int):
    _emit(
        logging.INFO,
        "transfer_started",
        f"Transfer started: {source_path} -> {dest_path} ({_mb(size)} MB)",
        source_path=source_path,
        dest_path=dest_path,
        size_mb=_mb(size),
    )


def transfer_completed(result):
    fields = {
        "source_path": result.source_path,
        "dest_path": result.dest_path,
        "size_mb": result.size_mb,
        "rate_mbps": result.rate_mbps,
    }
    if result.duration < 120:
        fields["duration_sec"] = round(result.duration, 1)
        took = f"{fields['duration_sec']}s"
    else:
        fields["duration_min"] = round(result.duration / 60, 1)
        took = f"{fields['duration_min']}m"

    _emit(
        logging.INFO,
        "transfer_completed",
        f"Transfer completed: {result.dest_path} ({result.size_mb} MB in {took}, "
        f"{result.rate_mbps} MB/s)",
        **fields,
    )


def transfer_skipped(source_path: str, dest_path: str, size: int, reason: str):
    _emit(
        logging.DEBUG,
        "transfer_skipped",
        f"Transfer skipped ({reason}): {dest_path}",
        source_path=source_path,
        dest_path=dest_path,
        size_mb=_mb(size),
        reason=reason,
    )


def sync_start(item_count: int):
    _emit(
        logging.INFO,
        "sync_start",
        f"Starting sync cycle with {item_count} items",
        item_count=item_count,
    )


def sync_complete(stats):
    counters = stats.as_dict()
    _emit(
        logging.INFO,
        "sync_complete",
        f"Sync cycle completed: {stats.items_discovered} items, "
        f"{stats.files_transferred} files transferred, "
        f"{stats.metadata_synced} metadata synced, "
        f"{stats.metadata_errors + stats.watch_state_errors + stats.transfer_failures} errors",
        **counters,
    )


def retry_attempt(operation: str, attempt: int, max_attempts: int, error: Exception):
    _emit(
        logging.WARNING,
        "retry_attempt",
        f"Retrying {operation} after error (attempt {attempt}/{max_attempts}): {error}",
        operation=operation,
        attempt=attempt,
        max_attempts=max_attempts,
        error=str(error),
    )


def dead_letter(item):
    _emit(
        logging.WARNING,
        "dead_letter_queue",
        f"Giving up on {item.title} after {item.attempts} attempts: {item.error}",
        key=item.key,
        title=item.title,
        error=item.error,
        retry_count=item.attempts,
    )


def watched_state_sync(rating_key: str, title: str, source_watched: bool, dest_watched: bool):
    _emit(
        logging.DEBUG,
        "watched_state_sync",
        f"Watched state synchronized: {title}",
        rating_key=rating_key,
        title=title,
        source_watched=source_watched,
        dest_watched=dest_watched,
    )


def library_scan_triggered(library_id: str, library_name: str):
    _emit(
        logging.INFO,
        "library_scan_triggered",
        f"Library scan triggered: {library_name} ({library_id})",
        library_id=library_id,
        library_name=library_name,
    )


def library_scan_completed(duration: float):
    _emit(
        logging.INFO,
        "library_scan_completed",
        f"Library scans completed in {duration:.0f}s",
        duration_ms=int(duration * 1000),
    )


class JsonEventFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": datetime.fromtimestamp(record.created).isoformat(timespec="seconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event:
            payload["event"] = event
            payload.update(getattr(record, "fields", {}))
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)
