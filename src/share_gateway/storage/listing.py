"""ListObjectsV2 response parsing.

The router only depends on ``parse_listing`` and the ``Listing`` shape,
so the XML wire format can be swapped (or an SDK dropped in) without
touching the routes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from xml.etree import ElementTree as ET

from ..errors import UpstreamError


class ListingParseError(UpstreamError):
    """Provider returned a listing we could not understand."""


@dataclass(frozen=True)
class ListedObject:
    key: str
    size: int
    last_modified: str | None = None


@dataclass(frozen=True)
class Listing:
    """Immediate children of a prefix: sub-folder prefixes and leaf objects."""

    prefixes: list[str] = field(default_factory=list)
    objects: list[ListedObject] = field(default_factory=list)


def _local(tag: str) -> str:
    # '{http://s3.amazonaws.com/doc/2006-03-01/}Key' -> 'Key'
    return tag.rsplit('}', 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local(child.tag) == name:
            return child.text or ''
    return None


def parse_listing(raw: bytes | str) -> Listing:
    """Parse a ``ListBucketResult`` document.

    Namespace-agnostic, since S3 and R2 both send the 2006-03-01
    namespace but some compatible stores omit it.

    Raises:
        ListingParseError: Not XML, wrong root element, ``<Contents>``
            without ``<Key>``, or a non-integer ``<Size>``.
    """
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as exc:
        raise ListingParseError('Could not parse storage listing.', internal=str(exc)) from exc

    if _local(root.tag) != 'ListBucketResult':
        raise ListingParseError(
            'Could not parse storage listing.',
            internal=f'unexpected root element {root.tag!r}',
        )

    prefixes: list[str] = []
    objects: list[ListedObject] = []
    for element in root:
        name = _local(element.tag)
        if name == 'CommonPrefixes':
            prefix = _child_text(element, 'Prefix')
            if prefix:
                prefixes.append(prefix)
        elif name == 'Contents':
            key = _child_text(element, 'Key')
            if not key:
                raise ListingParseError(
                    'Could not parse storage listing.', internal='<Contents> without <Key>',
                )
            size_text = _child_text(element, 'Size') or '0'
            try:
                size = int(size_text)
            except ValueError as exc:
                raise ListingParseError(
                    'Could not parse storage listing.', internal=f'bad <Size> {size_text!r}',
                ) from exc
            objects.append(ListedObject(
                key=key,
                size=size,
                last_modified=_child_text(element, 'LastModified') or None,
            ))

    return Listing(prefixes=prefixes, objects=objects)
