"""
Conversion of opaque source payload items into RegulatoryRecord objects.

Source-specific converters can replace ``normalize_records`` on the
orchestrator; this default looks for the field names common across the
regulator APIs and feeds we consume (openFDA, RSS/Atom, partner JSON).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from regsync.sources.models import DataSource, RegulatoryRecord

logger = logging.getLogger(__name__)

TITLE_KEYS = ("title", "name", "headline", "product_description", "device_name")
CONTENT_KEYS = ("content", "description", "summary", "reason_for_recall", "statement")
DATE_KEYS = (
    "published_at",
    "published",
    "date",
    "report_date",
    "decision_date",
    "recall_initiation_date",
)
URL_KEYS = ("url", "link", "href")
ID_KEYS = ("external_id", "id", "recall_number", "k_number", "event_id")

DATE_FORMATS = ("%Y-%m-%d", "%Y%m%d", "%Y-%m-%dT%H:%M:%S", "%m/%d/%Y", "%d/%m/%Y", "%B %d, %Y", "%d %B %Y")


def _first(item: dict, keys: Iterable[str]) -> Optional[Any]:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a date from a datetime, ISO string or one of the common formats."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    logger.debug("Could not parse date: %s", text)
    return None


def unwrap_payload(payload: Any) -> List[Any]:
    """Extract the list of items from a JSON API payload.

    A bare list is returned as is; a mapping yields its ``results`` or ``data``
    list, or itself as a single item. Scalars yield nothing.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("results", "data"):
            if isinstance(payload.get(key), list):
                return payload[key]
        return [payload]
    return []


def normalize_records(source: DataSource, items: List[Any]) -> List[RegulatoryRecord]:
    """Convert raw items from one source into normalised records.

    Items without any usable title are dropped.
    """
    records = []
    for item in items:
        if isinstance(item, RegulatoryRecord):
            records.append(item)
            continue

        if not isinstance(item, dict):
            title = str(item).strip()
            if title:
                records.append(
                    RegulatoryRecord(
                        title=title,
                        source_id=source.id,
                        region=source.region,
                        priority=source.priority.value,
                    )
                )
            continue

        title = _first(item, TITLE_KEYS)
        if not title:
            logger.debug("Skipping item without title from %s", source.id)
            continue

        external_id = _first(item, ID_KEYS)
        records.append(
            RegulatoryRecord(
                title=str(title).strip(),
                source_id=source.id,
                content=str(_first(item, CONTENT_KEYS) or ""),
                published_at=parse_date(_first(item, DATE_KEYS)),
                region=source.region,
                priority=str(item.get("priority") or source.priority.value),
                url=_first(item, URL_KEYS),
                external_id=str(external_id) if external_id is not None else None,
            )
        )

    dropped = len(items) - len(records)
    if dropped:
        logger.info("Dropped %d unusable items from %s", dropped, source.id)
    return records
