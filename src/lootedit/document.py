"""Loot document model: parse ``types.xml``, mutate it, serialize it back.

A document is a ``<types>`` root holding ``<type name="...">`` entries.  Each
child element of a type becomes a :class:`Field`.  Fields are either
text-shaped (``<nominal>30</nominal>``) or attribute-shaped
(``<flags count_in_map="1"/>``).  Anything the editor does not understand
(extra attributes, nested elements) is carried along untouched so a save
only rewrites what the user changed, plus indentation.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from xml.sax.saxutils import escape, unescape

from lxml import etree

from .errors import ParseError, SerializeError, StateError

log = logging.getLogger(__name__)

ROOT_TAG = "types"
TYPE_TAG = "type"
INDENT = "    "

_ATTR_PAIR = re.compile(r'\s*([^\s="]+)\s*=\s*"([^"]*)"')


@dataclass
class Field:
    name: str
    text: str | None = ""  # None marks an attribute-shaped field
    attributes: dict[str, str] = field(default_factory=dict)
    children: list = field(default_factory=list)  # unknown lxml child elements

    @property
    def is_text(self) -> bool:
        return self.text is not None

    @property
    def value(self) -> str:
        """The editable payload: text, or ``key="value"`` pairs."""
        if self.text is not None:
            return self.text
        return format_attributes(self.attributes)


@dataclass
class LootType:
    name: str
    fields: list[Field] = field(default_factory=list)
    attributes: dict[str, str] = field(default_factory=dict)  # besides name


@dataclass
class LootDocument:
    types: list[LootType] = field(default_factory=list)
    attributes: dict[str, str] = field(default_factory=dict)
    extras: list = field(default_factory=list)  # non-type children of root
    standalone: bool | None = None


# -- Attribute payloads -----------------------------------------------------


def format_attributes(attributes: dict[str, str]) -> str:
    """Render attributes as ``a="1" b="2"`` for display and editing."""
    return " ".join(
        f'{key}="{escape(val, {chr(34): "&quot;"})}"'
        for key, val in attributes.items()
    )


def parse_attributes(text: str) -> dict[str, str] | None:
    """Inverse of :func:`format_attributes`; ``None`` if *text* is not pairs."""
    text = text.strip()
    attributes: dict[str, str] = {}
    pos = 0
    while pos < len(text):
        match = _ATTR_PAIR.match(text, pos)
        if match is None:
            return None
        attributes[match.group(1)] = unescape(match.group(2), {"&quot;": '"'})
        pos = match.end()
        while pos < len(text) and text[pos].isspace():
            pos += 1
    return attributes


# -- Parsing ------------------------------------------------------------------


def _byte_offset(data: bytes, line: int, column: int) -> int:
    if line <= 0:
        return 0
    lines = data.splitlines(keepends=True)
    offset = sum(len(chunk) for chunk in lines[: line - 1])
    return min(offset + max(column - 1, 0), len(data))


def _is_element(node) -> bool:
    # comments, PIs and entity references carry a non-string tag
    return isinstance(node.tag, str)


def _detach(element):
    # mixed-content text after the element is kept, indentation is not
    clone = copy.deepcopy(element)
    clone.tail = (element.tail or "").strip() or None
    return clone


def _parse_field(element) -> Field:
    children = [_detach(child) for child in element if _is_element(child)]
    text = (element.text or "").strip()
    if not text and (len(element.attrib) or children):
        payload = None
    else:
        payload = text
    return Field(
        name=element.tag,
        text=payload,
        attributes=dict(element.attrib),
        children=children,
    )


def _parse_type(element) -> LootType:
    return LootType(
        name=element.get("name", ""),
        fields=[_parse_field(child) for child in element if _is_element(child)],
        attributes={k: v for k, v in element.attrib.items() if k != "name"},
    )


def parse(data: bytes) -> LootDocument:
    """Parse a ``types.xml`` byte buffer into a :class:`LootDocument`.

    Raises :class:`ParseError` on malformed markup or a root element other
    than ``<types>``.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not data.strip():
        raise ParseError("document is empty", 0)
    parser = etree.XMLParser(
        remove_comments=True,
        remove_pis=True,
        resolve_entities=False,
        no_network=True,
    )
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as exc:
        line, column = exc.position
        raise ParseError(exc.msg or "malformed XML", _byte_offset(data, line, column)) from exc

    if root.tag != ROOT_TAG:
        raise ParseError(
            f"expected <{ROOT_TAG}> root element, found <{root.tag}>",
            _byte_offset(data, root.sourceline or 0, 1),
        )

    doc = LootDocument(
        attributes=dict(root.attrib),
        standalone=root.getroottree().docinfo.standalone,
    )
    for child in root:
        if not _is_element(child):
            continue
        if child.tag == TYPE_TAG:
            doc.types.append(_parse_type(child))
        else:
            doc.extras.append(_detach(child))
    log.debug("parsed %d types (%d extra elements)", len(doc.types), len(doc.extras))
    return doc


# -- Serialization -----------------------------------------------------------


def _build_field(parent, item: Field) -> None:
    element = etree.SubElement(parent, item.name)
    for key, val in item.attributes.items():
        element.set(key, val)
    if item.text is not None:
        element.text = item.text
    for child in item.children:
        element.append(copy.deepcopy(child))


def _build_tree(doc: LootDocument):
    root = etree.Element(ROOT_TAG)
    for key, val in doc.attributes.items():
        root.set(key, val)
    for loot_type in doc.types:
        type_element = etree.SubElement(root, TYPE_TAG)
        type_element.set("name", loot_type.name)
        for key, val in loot_type.attributes.items():
            type_element.set(key, val)
        for item in loot_type.fields:
            _build_field(type_element, item)
    for extra in doc.extras:
        root.append(copy.deepcopy(extra))
    return root


def serialize(doc: LootDocument) -> bytes:
    """Serialize *doc* as UTF-8 with four-space indentation.

    Output depends only on the model, never on the whitespace of the file it
    was parsed from.  Raises :class:`SerializeError` if a name or value
    cannot be written as XML.
    """
    try:
        root = _build_tree(doc)
    except ValueError as exc:
        raise SerializeError(str(exc)) from exc
    etree.indent(root, space=INDENT)
    body = etree.tostring(
        root,
        encoding="UTF-8",
        xml_declaration=True,
        standalone=doc.standalone,
    )
    return body + b"\n"


# -- Mutations ----------------------------------------------------------------


def _in_bounds(items: list, index: int, what: str) -> bool:
    if 0 <= index < len(items):
        return True
    if __debug__:
        raise StateError(f"{what} index {index} out of range for {len(items)} items")
    return False


def add_type(doc: LootDocument, name: str) -> int:
    doc.types.append(LootType(name=name))
    return len(doc.types) - 1


def add_field(loot_type: LootType, name: str) -> int:
    loot_type.fields.append(Field(name=name))
    return len(loot_type.fields) - 1


def copy_type(doc: LootDocument, index: int) -> int:
    """Insert a deep copy of type *index* right after it; return the new index."""
    if not _in_bounds(doc.types, index, "type"):
        return index
    doc.types.insert(index + 1, copy.deepcopy(doc.types[index]))
    return index + 1


def copy_field(loot_type: LootType, index: int) -> int:
    if not _in_bounds(loot_type.fields, index, "field"):
        return index
    loot_type.fields.insert(index + 1, copy.deepcopy(loot_type.fields[index]))
    return index + 1


def delete_type(doc: LootDocument, index: int) -> None:
    if _in_bounds(doc.types, index, "type"):
        del doc.types[index]


def delete_field(loot_type: LootType, index: int) -> None:
    if _in_bounds(loot_type.fields, index, "field"):
        del loot_type.fields[index]


def rename_type(doc: LootDocument, index: int, name: str) -> None:
    if _in_bounds(doc.types, index, "type"):
        doc.types[index].name = name


def set_field_name(loot_type: LootType, index: int, name: str) -> None:
    if _in_bounds(loot_type.fields, index, "field"):
        loot_type.fields[index].name = name


def set_field_value(loot_type: LootType, index: int, value: str) -> None:
    """Set a field's payload from its editable text form.

    Attribute-shaped fields take ``key="value"`` pairs.  Any other text turns
    the field text-shaped so the input is kept as typed.
    """
    if not _in_bounds(loot_type.fields, index, "field"):
        return
    item = loot_type.fields[index]
    if item.text is None:
        attributes = parse_attributes(value)
        if attributes is not None:
            item.attributes = attributes
            return
        log.debug("field <%s> is now text-shaped", item.name)
        item.attributes = {}
    item.text = value
