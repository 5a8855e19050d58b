"""Read the scheduling fields embedded in an uploaded invoice file."""
import logging
import re
from typing import Dict, Optional, Tuple
from xml.etree import ElementTree as ET

from invoice_mover.errors import ValidationError
from invoice_mover.schemas import parse_date, parse_time, format_time

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ("date", "time")


def extract_schedule(text: str) -> Tuple[str, str]:
    """Return the ``(date, time)`` declared inside an invoice payload.

    ``<date>yyyy/MM/dd</date>`` and ``<time>yyyy/MM/dd HH:mm:ss</time>`` may sit anywhere in
    the document and may carry a namespace. Payloads that are not well-formed XML are
    searched for the same tags as plain text.

    Raises:
        ValidationError: a field is missing, empty, or not in the expected format
    """
    if not text or not text.strip():
        raise ValidationError("Invoice content is empty")

    fields = _fields_from_xml(text)
    if fields is None:
        logger.debug("Invoice content is not well-formed XML, falling back to tag search")
        fields = _fields_from_tags(text)

    missing = [name for name in SCHEDULE_FIELDS if not fields.get(name)]
    if missing:
        raise ValidationError(f"Invoice content has no {', '.join(missing)} field")

    date = parse_date(fields["date"])
    time = format_time(parse_time(fields["time"]))
    return date, time


def _fields_from_xml(text: str) -> Optional[Dict[str, str]]:
    try:
        root = ET.fromstring(text.strip())
    except ET.ParseError:
        return None

    fields: Dict[str, str] = {}
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        # Strip namespace: {urn:...}date -> date
        local_name = element.tag.rsplit("}", 1)[-1]
        if local_name in SCHEDULE_FIELDS and local_name not in fields and element.text:
            fields[local_name] = element.text.strip()
    return fields


def _fields_from_tags(text: str) -> Dict[str, str]:
    fields = {}
    for name in SCHEDULE_FIELDS:
        match = re.search(rf"<(?:\w+:)?{name}(?:\s[^>]*)?>(.*?)</(?:\w+:)?{name}>", text, re.DOTALL)
        if match and match.group(1).strip():
            fields[name] = match.group(1).strip()
    return fields
