"""
ElementTree helpers shared by the XML generators.
"""

import re
import xml.etree.ElementTree as ET
from typing import Optional

from ..errors import GenerationError


XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# C0 controls other than tab, LF and CR are not allowed in XML 1.0
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_GERMAN_DATE = re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$")
_COMPACT_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")


# ============================================================================
# Dates
# ============================================================================

def _date_parts(value: Optional[str]) -> tuple[str, str, str]:
    """
    Split a date into (year, month, day).

    Accepts YYYY-MM-DD, DD.MM.YYYY and YYYYMMDD only. Slash formats are
    rejected because 01/02/2024 is ambiguous between locales.
    """
    text = (value or "").strip()
    # ISO timestamps carry the date in their first ten characters
    if len(text) > 10 and text[10] == "T":
        text = text[:10]
    iso, german, compact = _ISO_DATE.match(text), _GERMAN_DATE.match(text), _COMPACT_DATE.match(text)
    if iso:
        year, month, day = iso.groups()
    elif german:
        day, month, year = german.groups()
    elif compact:
        year, month, day = compact.groups()
    else:
        raise GenerationError(
            f"Unsupported date format: {value!r} (expected YYYY-MM-DD, DD.MM.YYYY or YYYYMMDD)"
        )
    if not (1 <= int(month) <= 12 and 1 <= int(day) <= 31):
        raise GenerationError(f"Invalid date: {value!r}")
    return year, month, day


def format_date_iso(value: Optional[str]) -> str:
    """Date as YYYY-MM-DD (UBL, FatturaPA, KSeF)."""
    year, month, day = _date_parts(value)
    return f"{year}-{month}-{day}"


def format_date_cii(value: Optional[str]) -> str:
    """Date as YYYYMMDD (CII DateTimeString format 102)."""
    year, month, day = _date_parts(value)
    return f"{year}{month}{day}"


# ============================================================================
# Building
# ============================================================================

def clean_text(value) -> str:
    return _CONTROL_CHARS.sub("", str(value))


def sub(parent: ET.Element, tag: str, text=None, **attrs: str) -> ET.Element:
    """Append a child element with optional text and attributes."""
    element = ET.SubElement(parent, tag, {k: v for k, v in attrs.items() if v is not None})
    if text is not None:
        element.text = clean_text(text)
    return element


def opt_sub(parent: ET.Element, tag: str, text, **attrs: str) -> Optional[ET.Element]:
    """Append a child element only when text is present."""
    if text is None or (isinstance(text, str) and not text.strip()):
        return None
    return sub(parent, tag, text, **attrs)


def root_element(tag: str, namespaces: dict[str, str], **attrs: str) -> ET.Element:
    """Root element with prefixed namespace declarations."""
    root = ET.Element(tag)
    for prefix, uri in namespaces.items():
        root.set(f"xmlns:{prefix}" if prefix else "xmlns", uri)
    for key, value in attrs.items():
        root.set(key, value)
    return root


def serialize(root: ET.Element) -> str:
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode")


# ============================================================================
# Inspection
# ============================================================================

def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_xml(xml: str) -> ET.Element:
    """Parse generated XML; raises ET.ParseError when not well-formed."""
    return ET.fromstring(xml.encode("utf-8"))


def find_local(root: ET.Element, name: str) -> Optional[ET.Element]:
    """First descendant (or the root) whose local name matches."""
    for element in root.iter():
        if local_name(element.tag) == name:
            return element
    return None


def element_names(root: ET.Element) -> set[str]:
    return {local_name(element.tag) for element in root.iter()}


def missing_elements(root: ET.Element, required: list[str]) -> list[str]:
    names = element_names(root)
    return [name for name in required if name not in names]


def sanitize_file_name(value: str, fallback: str = "invoice") -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_.-]", "_", value or "").strip("._")
    return cleaned or fallback
