"""
Low-level extraction helpers: DOM lookups, embedded JSON, dates and durations.

Every helper raises ExtractionError instead of returning a partial value.
"""

import json
import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import jsonschema
from bs4 import BeautifulSoup, Tag

from music_graph_crawler.utils.errors import ExtractionError


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_DURATION_PATTERN = re.compile(
    r'^P(?:(?P<days>\d+(?:\.\d+)?)D)?'
    r'(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?'
    r'(?:(?P<minutes>\d+(?:\.\d+)?)M)?'
    r'(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$'
)

_ID_PATTERN = re.compile(r"[0-9]+")

# Some release pages write "P00H03M21S" where ISO 8601 needs "PT03M21S"
_BROKEN_DURATION_PREFIX = "P00H"


def parse_document(html: str) -> BeautifulSoup:
    """Parse an HTML page."""
    return BeautifulSoup(html, 'lxml')


def select_one(node: Tag, selector: str) -> Tag:
    """
    Find the first element matching a CSS selector.
    
    Raises:
        ExtractionError: If nothing matches
    """
    element = node.select_one(selector)
    if element is None:
        raise ExtractionError(f"missing element for {selector}", {"selector": selector})
    return element


def select_all(node: Tag, selector: str) -> List[Tag]:
    """Find every element matching a CSS selector (possibly none)."""
    return node.select(selector)


def get_attribute(element: Tag, name: str) -> str:
    """
    Read a required attribute.
    
    Raises:
        ExtractionError: If the attribute is missing
    """
    value = element.get(name)
    if value is None:
        raise ExtractionError(f"missing {name}", {"element": element.name, "attribute": name})
    if isinstance(value, list):
        # bs4 splits multi-valued attributes such as class
        value = " ".join(value)
    return value


def parse_json(text: str, schema: Optional[Dict[str, Any]] = None) -> Any:
    """
    Decode a JSON document, optionally validating it against a JSON Schema.
    
    Args:
        text: JSON text
        schema: Optional JSON Schema the decoded value must satisfy
        
    Returns:
        Decoded value
        
    Raises:
        ExtractionError: If decoding or validation fails
    """
    try:
        value = json.loads(text)
    except (TypeError, ValueError, RecursionError) as e:
        raise ExtractionError("malformed embedded JSON", {"error": str(e)})
    
    if schema is not None:
        try:
            jsonschema.validate(instance=value, schema=schema)
        except jsonschema.ValidationError as e:
            raise ExtractionError(
                f"unexpected JSON structure: {e.message}",
                {"path": "/".join(str(part) for part in e.absolute_path)}
            )
        except RecursionError:
            raise ExtractionError("embedded JSON is nested too deeply")
    
    return value


def json_attribute(node: Tag, selector: str, attribute: str, schema: Optional[Dict[str, Any]] = None) -> Any:
    """Decode the JSON carried in an attribute of a required element."""
    return parse_json(get_attribute(select_one(node, selector), attribute), schema)


def parse_duration(value: str) -> timedelta:
    """
    Parse an ISO 8601 duration such as ``PT3M21S`` or ``P1DT2H``.
    
    The malformed ``P00H...`` form found on some pages is rewritten to
    ``PT...`` first.
    
    Raises:
        ExtractionError: If the value is not a duration
    """
    text = value.strip()
    if text.startswith(_BROKEN_DURATION_PREFIX):
        text = "PT" + text[len(_BROKEN_DURATION_PREFIX):]
    
    match = _DURATION_PATTERN.match(text)
    if match is None or text in ("P", "PT") or text.endswith("T"):
        raise ExtractionError(f"invalid duration {value!r}", {"duration": value})
    
    parts = {name: float(amount) for name, amount in match.groupdict().items() if amount is not None}
    try:
        return timedelta(
            days=parts.get("days", 0),
            hours=parts.get("hours", 0),
            minutes=parts.get("minutes", 0),
            seconds=parts.get("seconds", 0),
        )
    except OverflowError:
        raise ExtractionError(f"duration out of range {value!r}", {"duration": value})


def parse_rfc2822(value: str) -> datetime:
    """
    Parse an RFC 2822 date such as ``20 Feb 2015 00:00:00 GMT``.
    
    Raises:
        ExtractionError: If the value is not a valid date
    """
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError) as e:
        raise ExtractionError(f"invalid date {value!r}", {"date": value, "error": str(e)})
    if parsed is None:
        raise ExtractionError(f"invalid date {value!r}", {"date": value})
    if parsed.tzinfo is None:
        # "-0000" means UTC with unknown local offset
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def round_to_day(value: datetime) -> datetime:
    """Round to the nearest midnight in the value's own offset; noon rounds up."""
    midnight = value.replace(hour=0, minute=0, second=0, microsecond=0)
    if value - midnight < timedelta(hours=12):
        return midnight
    try:
        return midnight + timedelta(days=1)
    except OverflowError:
        raise ExtractionError(f"date out of range {value.isoformat()}", {"date": value.isoformat()})


def parse_item_id(value: str) -> int:
    """
    Parse a 64-bit entity id.
    
    Raises:
        ExtractionError: If the value is not an unsigned 64-bit integer
    """
    if not isinstance(value, str) or not _ID_PATTERN.fullmatch(value):
        raise ExtractionError(f"failed to parse id {value!r}", {"id": value})
    item_id = int(value)
    if not 0 <= item_id < 2 ** 64:
        raise ExtractionError(f"id out of range {value!r}", {"id": value})
    return item_id


def element_text(element: Tag) -> str:
    """Text content of an element; raw source for script tags."""
    if element.string is not None:
        return str(element.string)
    return element.get_text()
