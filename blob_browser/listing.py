from __future__ import annotations
"""Parsers for container enumeration responses."""
from email.utils import parsedate_to_datetime
from typing import Optional, Protocol
from urllib.parse import quote
from xml.etree import ElementTree

from .errors import StorageError
from .models import EnumerationPage, ObjectRecord

_UTF8_BOM = b"\xef\xbb\xbf"


class EnumerationParser(Protocol):
    def parse(self, body: bytes, *, base_url: str) -> EnumerationPage:
        ...


def object_url(base_url: str, name: str) -> str:
    return f"{base_url.rstrip('/')}/{quote(name, safe='/')}"


def parse_http_date(value: Optional[str]):
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def parse_int(value: Optional[str]) -> int:
    try:
        return int(value) if value else 0
    except ValueError:
        return 0


class XmlEnumerationParser:
    """Reads ``EnumerationResults`` documents returned by ``comp=list``."""

    def parse(self, body: bytes, *, base_url: str) -> EnumerationPage:
        if body.startswith(_UTF8_BOM):
            body = body[len(_UTF8_BOM):]
        if not body.strip():
            return EnumerationPage()
        try:
            root = ElementTree.fromstring(body)
        except ElementTree.ParseError as exc:
            raise StorageError(
                f"Malformed enumeration response: {exc}",
                raw_body=body.decode("utf-8", errors="replace"),
            ) from exc

        records = [self._parse_blob(blob, base_url) for blob in root.iterfind("Blobs/Blob")]
        next_marker = (root.findtext("NextMarker") or "").strip() or None
        return EnumerationPage(records=records, next_marker=next_marker)

    def _parse_blob(self, blob: ElementTree.Element, base_url: str) -> ObjectRecord:
        name = blob.findtext("Name") or ""
        properties = blob.find("Properties")

        def prop(tag: str) -> Optional[str]:
            if properties is None:
                return None
            return properties.findtext(tag)

        metadata = {}
        metadata_node = blob.find("Metadata")
        if metadata_node is not None:
            metadata = {child.tag: child.text or "" for child in metadata_node}

        return ObjectRecord(
            name=name,
            size=parse_int(prop("Content-Length")),
            content_type=prop("Content-Type") or "",
            last_modified=parse_http_date(prop("Last-Modified")),
            etag=prop("Etag"),
            url=object_url(base_url, name),
            metadata=metadata,
        )
