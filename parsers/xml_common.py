"""Helpers shared by the GPX and TCX parsers."""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Iterator, Optional, Union

from dateutil.parser import isoparse

from parsers.exceptions import ParseFailure

logger = logging.getLogger(__name__)


def local_name(tag) -> str:
    """Strip the namespace from an element tag."""
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]


def parse_root(content: Union[bytes, str], format_name: str) -> ET.Element:
    """Parse XML content and return the root element.

    Args:
        content: Raw file bytes or decoded text
        format_name: Format label used in error messages

    Returns:
        Root element

    Raises:
        ParseFailure: If the content is not well-formed XML
    """
    if isinstance(content, str):
        content = content.encode('utf-8')
    content = content.lstrip()
    if content.startswith(b'\xef\xbb\xbf'):
        content = content[3:].lstrip()
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise ParseFailure(f"Invalid {format_name} XML format: {e}") from e


def iter_local(element: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield descendants with the given local name, in document order."""
    for child in element.iter():
        if local_name(child.tag) == name:
            yield child


def find_child(element: ET.Element, *names: str) -> Optional[ET.Element]:
    """Find the first direct child matching one of the local names."""
    for child in element:
        if local_name(child.tag) in names:
            return child
    return None


def find_descendant(element: ET.Element, *names: str) -> Optional[ET.Element]:
    """Find the first descendant (excluding the element itself) matching a local name."""
    for child in element.iter():
        if child is element:
            continue
        if local_name(child.tag) in names:
            return child
    return None


def text_of(element: Optional[ET.Element]) -> Optional[str]:
    if element is None or element.text is None:
        return None
    text = element.text.strip()
    return text or None


def to_float(text: Optional[str]) -> Optional[float]:
    """Convert element text to float, returning None when it is missing or malformed."""
    if text is None:
        return None
    try:
        value = float(text)
    except ValueError:
        logger.debug(f"Ignoring non-numeric value: {text!r}")
        return None
    if value != value or value in (float('inf'), float('-inf')):
        return None
    return value


def parse_time(text: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Timestamps without a zone designator are taken as UTC. Anything that is not
    ISO 8601 (including relative words such as "now") yields None.
    """
    if text is None:
        return None
    try:
        parsed = isoparse(text.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
