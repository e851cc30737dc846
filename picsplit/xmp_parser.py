# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
XMP (Extensible Metadata Platform) reassembly and decoding

JPEG files carry XMP in APP1 segments. A standard packet fits in one
segment; larger payloads are split into ExtendedXMP chunks that share
an MD5 digest and declare their offset in the full payload. This module
puts the chunks back together and decodes the resulting stream as a
sequence of standalone XML documents.

Copyright 2025 DNAi inc.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional
from xml.parsers import expat

from picsplit.exceptions import XmpDecodeError

logger = logging.getLogger(__name__)


XMP_STANDARD_ID = "http://ns.adobe.com/xap/1.0/"
XMP_EXTENDED_ID = "http://ns.adobe.com/xmp/extension/"

# Namespaces used by the depth and resource container schemas
NS_RDF = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
NS_XMPMETA = "adobe:ns:meta/"
NS_GDEPTH = "http://ns.google.com/photos/1.0/depthmap/"
NS_GIMAGE = "http://ns.google.com/photos/1.0/image/"
NS_DEVICE = "http://ns.google.com/photos/dd/1.0/device/"
NS_CONTAINER = "http://ns.google.com/photos/dd/1.0/container/"
NS_ITEM = "http://ns.google.com/photos/dd/1.0/item/"

_JUNK_AFTER_ROOT = expat.errors.codes[expat.errors.XML_ERROR_JUNK_AFTER_DOC_ELEMENT]
# Packet padding that may trail the last document
_PADDING = b" \t\r\n\x00"


@dataclass
class XmpChunk:
    """
    XMP payload carried by one APP1 segment.

    Standard chunks have no digest; extended chunks carry the digest of
    the full payload, its total length and this chunk's offset in it.
    """
    identifier: str
    payload: bytes
    digest: Optional[bytes] = None
    full_length: int = 0
    offset_in_full: int = 0

    @property
    def is_extended(self) -> bool:
        return self.identifier == XMP_EXTENDED_ID

    def __str__(self) -> str:
        if not self.is_extended:
            return "  XMP packet: 1st\n"
        digest = self.digest.decode('ascii', errors='replace') if self.digest else ''
        return (
            f"  XMP packet: {digest}, {self.offset_in_full}/{self.full_length}, "
            f"{len(self.payload)}[bytes]\n"
        )


@dataclass
class ContainerItem:
    """Directory item of the resource container schema."""
    mime: str = ''
    length: int = 0
    data_uri: str = ''
    offset: int = 0  # computed by the extractor

    @property
    def name(self) -> str:
        """Last component of the data URI (e.g. 'depthmap')."""
        return self.data_uri.rsplit('/', 1)[-1]


@dataclass
class XmpDocument:
    """
    Fields of one XMP document used by the image schemas.

    Strings default to '' and numbers to 0, so a missing field reads as
    its zero value.
    """
    depth_mime: str = ''
    depth_format: str = ''
    depth_near: float = 0.0
    depth_far: float = 0.0
    depth_data: str = ''
    image_mime: str = ''
    image_data: str = ''
    container_items: List[ContainerItem] = field(default_factory=list)


class XmpReassembler:
    """
    Collects XMP chunks in file order and rebuilds the XMP stream.

    The stream is every standard chunk's payload in file order, followed
    by each distinct extended digest group with its chunks sorted by
    declared offset.
    """

    def __init__(self):
        self.standard: List[XmpChunk] = []
        self.extended: Dict[bytes, List[XmpChunk]] = {}

    def __len__(self) -> int:
        return len(self.standard) + sum(len(group) for group in self.extended.values())

    def add(self, chunk: XmpChunk) -> None:
        if chunk.is_extended:
            # dicts keep insertion order, so groups stay in file order
            self.extended.setdefault(chunk.digest, []).append(chunk)
        else:
            self.standard.append(chunk)
        logger.debug("Collected XMP chunk: %s", str(chunk).strip())

    def assemble(self) -> bytes:
        """Return the complete XMP byte stream."""
        parts = [chunk.payload for chunk in self.standard]
        for digest, group in self.extended.items():
            ordered = sorted(group, key=lambda c: c.offset_in_full)
            full = b''.join(chunk.payload for chunk in ordered)
            expected = ordered[0].full_length
            if len(full) != expected:
                logger.warning(
                    "Extended XMP %s reassembled to %d bytes, header declares %d",
                    digest.decode('ascii', errors='replace'), len(full), expected,
                )
            parts.append(full)
        return b''.join(parts)

    def write_packets(self, stream: BinaryIO) -> int:
        """Write the assembled stream to a binary file object."""
        return stream.write(self.assemble())

    def documents(self) -> List[XmpDocument]:
        """Decode the assembled stream into XMP documents."""
        return decode_documents(self.assemble())


def split_documents(data: bytes) -> List[bytes]:
    """
    Split a byte stream of concatenated XML documents.

    Each document runs from the current position up to the first byte
    that cannot follow its root element. Splitting stops at the first
    document that fails to parse; anything after it is ignored.
    """
    documents = []
    position = 0
    while position < len(data):
        rest = data[position:]
        state = {'depth': 0, 'closed': False}

        def start(name, attrs):
            state['depth'] += 1

        def end(name):
            state['depth'] -= 1
            if state['depth'] == 0:
                state['closed'] = True

        parser = expat.ParserCreate()
        parser.StartElementHandler = start
        parser.EndElementHandler = end
        try:
            parser.Parse(rest, True)
        except expat.ExpatError as e:
            # Anything after a complete root element starts the next document
            if not state['closed'] or parser.ErrorByteIndex <= 0:
                if rest.strip(_PADDING):
                    logger.warning("XMP stream: no document decoded from byte %d: %s", position, e)
                break
            if e.code != _JUNK_AFTER_ROOT:
                logger.debug("XMP stream: non-XML bytes at %d", position + parser.ErrorByteIndex)
            documents.append(rest[:parser.ErrorByteIndex])
            position += parser.ErrorByteIndex
            continue
        documents.append(rest)
        break
    return documents


def _property(description: ET.Element, namespace: str, name: str) -> str:
    """Read an RDF property given either as attribute or as child element."""
    key = f'{{{namespace}}}{name}'
    value = description.get(key)
    if value is None:
        child = description.find(key)
        if child is not None and child.text:
            value = child.text.strip()
    return value or ''


def _number(text: str, convert, what: str):
    if not text:
        return convert(0)
    try:
        return convert(text.strip())
    except ValueError as e:
        raise XmpDecodeError(f"Invalid {what} value {text!r}") from e


def parse_document(data: bytes) -> XmpDocument:
    """
    Decode one XML document into an XmpDocument.

    Raises:
        XmpDecodeError: If the XML is malformed or a numeric field is not a number
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise XmpDecodeError(f"Malformed XMP document: {e}") from e

    if root.tag != f'{{{NS_XMPMETA}}}xmpmeta':
        raise XmpDecodeError(f"Unexpected XMP root element {root.tag}")

    doc = XmpDocument()
    # Writers may split properties over several rdf:Description elements;
    # the first non-empty value of each field wins.
    for description in root.iterfind(f'{{{NS_RDF}}}RDF/{{{NS_RDF}}}Description'):
        _analyze_description(description, doc)
    return doc


def _analyze_description(description: ET.Element, doc: XmpDocument) -> None:
    doc.depth_mime = doc.depth_mime or _property(description, NS_GDEPTH, 'Mime')
    doc.depth_format = doc.depth_format or _property(description, NS_GDEPTH, 'Format')
    doc.depth_near = doc.depth_near or _number(
        _property(description, NS_GDEPTH, 'Near'), float, 'GDepth:Near')
    doc.depth_far = doc.depth_far or _number(
        _property(description, NS_GDEPTH, 'Far'), float, 'GDepth:Far')
    doc.depth_data = doc.depth_data or _property(description, NS_GDEPTH, 'Data')
    doc.image_mime = doc.image_mime or _property(description, NS_GIMAGE, 'Mime')
    doc.image_data = doc.image_data or _property(description, NS_GIMAGE, 'Data')

    if doc.container_items:
        return
    path = (
        f'{{{NS_DEVICE}}}Container/{{{NS_CONTAINER}}}Directory/'
        f'{{{NS_RDF}}}Seq/{{{NS_RDF}}}li'
    )
    for li in description.iterfind(path):
        item = li.find(f'{{{NS_CONTAINER}}}Item')
        if item is None:
            doc.container_items.append(ContainerItem())
            continue
        doc.container_items.append(ContainerItem(
            mime=item.get(f'{{{NS_ITEM}}}Mime', ''),
            length=_number(item.get(f'{{{NS_ITEM}}}Length', ''), int, 'Item:Length'),
            data_uri=item.get(f'{{{NS_ITEM}}}DataURI', ''),
        ))


def decode_documents(data: bytes) -> List[XmpDocument]:
    """
    Decode every document of an XMP stream, in order.

    Decoding stops at the first document that fails; the documents
    decoded so far are returned.
    """
    documents = []
    for raw in split_documents(data):
        try:
            documents.append(parse_document(raw))
        except XmpDecodeError as e:
            logger.warning("XMP document %d not decoded, ignoring it and the rest of the stream: %s",
                           len(documents), e)
            break
    logger.debug("Decoded %d XMP document(s)", len(documents))
    return documents
