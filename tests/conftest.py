"""
Shared builders for synthetic JPEG files used across the test suite.
"""

import base64
import hashlib
import struct

import pytest

XMP_STANDARD_ID = b'http://ns.adobe.com/xap/1.0/\x00'
XMP_EXTENDED_ID = b'http://ns.adobe.com/xmp/extension/\x00'
RDF_OPEN = '<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'


def segment(marker: int, payload: bytes) -> bytes:
    """Marker, length field (counting itself) and payload."""
    return struct.pack('>HH', marker, len(payload) + 2) + payload


def jfif_segment() -> bytes:
    payload = b'JFIF\x00' + struct.pack('>HBHHBB', 0x0102, 1, 72, 72, 0, 0)
    return segment(0xFFE0, payload)


def xmp_segment(xml: bytes) -> bytes:
    return segment(0xFFE1, XMP_STANDARD_ID + xml)


def extended_xmp_segments(xml: bytes, chunk_size: int, order=None) -> list:
    """Split xml into ExtendedXMP APP1 segments, optionally reordered."""
    digest = hashlib.md5(xml).hexdigest().upper().encode('ascii')
    chunks = []
    for offset in range(0, len(xml), chunk_size):
        header = digest + struct.pack('>II', len(xml), offset)
        chunks.append(segment(0xFFE1, XMP_EXTENDED_ID + header + xml[offset:offset + chunk_size]))
    if order is not None:
        chunks = [chunks[i] for i in order]
    return chunks


def tiff_stream(entries, byte_order='<', next_ifds=()) -> bytes:
    """
    Build a TIFF stream with a single IFD at offset 8.

    entries: list of (tag, type, count, 4-byte slot) tuples.
    next_ifds: extra IFDs, each a list of entries, chained after the first.
    """
    mark = b'II' if byte_order == '<' else b'MM'
    out = bytearray(mark + struct.pack(f'{byte_order}HI', 42, 8))
    directories = [entries] + list(next_ifds)
    offset = 8
    for i, directory in enumerate(directories):
        size = 2 + 12 * len(directory) + 4
        next_offset = offset + size if i + 1 < len(directories) else 0
        out += struct.pack(f'{byte_order}H', len(directory))
        for tag, ifd_type, count, slot in directory:
            out += struct.pack(f'{byte_order}HHI', tag, ifd_type, count) + slot
        out += struct.pack(f'{byte_order}I', next_offset)
        offset += size
    return bytes(out)


def exif_segment(tiff: bytes) -> bytes:
    return segment(0xFFE1, b'Exif\x00\x00' + tiff)


def build_jpeg(app_segments=(), data=b'\x12\x34\x56\x78' * 4, first=None) -> bytes:
    """
    SOI, first APP segment (JFIF by default), extra APP segments, DQT, SOF,
    DHT, SOS, entropy data and EOI.
    """
    parts = [b'\xff\xd8', first if first is not None else jfif_segment()]
    parts.extend(app_segments)
    parts.append(segment(0xFFDB, b'\x00' + bytes(64)))
    parts.append(segment(0xFFC0, b'\x08\x00\x10\x00\x10\x01\x01\x11\x00'))
    parts.append(segment(0xFFC4, b'\x00' + bytes(16) + b'\x00'))
    parts.append(segment(0xFFDA, b'\x01\x01\x00\x00\x3f\x00'))
    parts.append(data)
    parts.append(b'\xff\xd9')
    return b''.join(parts)


def xmp_document(attributes: str = "", body: str = "") -> bytes:
    """An x:xmpmeta document with one rdf:Description."""
    return (
        '<x:xmpmeta xmlns:x="adobe:ns:meta/">'
        + RDF_OPEN
        + '<rdf:Description rdf:about=""'
        + ' xmlns:GDepth="http://ns.google.com/photos/1.0/depthmap/"'
        + ' xmlns:GImage="http://ns.google.com/photos/1.0/image/"'
        + ' xmlns:Device="http://ns.google.com/photos/dd/1.0/device/"'
        + ' xmlns:Container="http://ns.google.com/photos/dd/1.0/container/"'
        + ' xmlns:Item="http://ns.google.com/photos/dd/1.0/item/"'
        + " " + attributes + ">"
        + body
        + '</rdf:Description></rdf:RDF></x:xmpmeta>'
    ).encode('utf-8')


def container_body(items) -> str:
    """Device:Container directory for (mime, length, uri) tuples."""
    lis = ''.join(
        f'<rdf:li rdf:parseType="Resource"><Container:Item Item:Mime="{mime}"'
        f' Item:Length="{length}" Item:DataURI="{uri}"/></rdf:li>'
        for mime, length, uri in items
    )
    return f'<Device:Container><Container:Directory><rdf:Seq>{lis}</rdf:Seq></Container:Directory></Device:Container>'


def embedded_jpeg(fill: bytes, size: int) -> bytes:
    """A fake JPEG image of exactly size bytes: SOI, filler, EOI."""
    return b'\xff\xd8' + (fill * size)[:size - 4] + b'\xff\xd9'


@pytest.fixture
def simple_jpeg():
    return build_jpeg()


@pytest.fixture
def container_file():
    """
    File using the resource container schema: primary scan data followed by
    original image, depth map and confidence map; the confidence map's EOI
    is the EOI of the file.
    """
    primary = b'\x11\x22\x33\x44' * 5
    original = embedded_jpeg(b'\xaa', 14)
    depth = embedded_jpeg(b'\xbb', 12)
    confidence = embedded_jpeg(b'\xcc', 10)

    doc1 = xmp_document('GDepth:Format="RangeInverse"')
    doc2 = xmp_document(body=container_body([
        ('image/jpeg', 0, 'primary_image'),
        ('image/jpeg', len(original), 'android/original_image'),
        ('image/jpeg', len(depth), 'android/depthmap'),
        ('image/jpeg', len(confidence), 'android/confidencemap'),
    ]))
    app = [xmp_segment(doc1)] + extended_xmp_segments(doc2, 200)
    data = primary + original + depth + confidence[:-2]
    return {
        'bytes': build_jpeg(app, data=data),
        'primary': primary,
        'original': original,
        'depth': depth,
        'confidence': confidence,
    }


@pytest.fixture
def depth_file():
    """File using the legacy GDepth/GImage schema."""
    depth_png = b'\x89PNG\r\n\x1a\n' + b'depthdata'
    image_jpeg = embedded_jpeg(b'\x5a', 16)
    doc1 = xmp_document(
        'GDepth:Mime="image/png" GDepth:Format="RangeInverse" GDepth:Near="0.5" '
        'GDepth:Far="2.25" GImage:Mime="image/jpeg"'
    )
    doc2 = xmp_document(
        f'GDepth:Data="{base64.b64encode(depth_png).decode()}" '
        f'GImage:Data="{base64.b64encode(image_jpeg).decode()}"'
    )
    app = [xmp_segment(doc1)] + list(reversed(extended_xmp_segments(doc2, 64)))
    return {
        'bytes': build_jpeg(app),
        'depth': depth_png,
        'image': image_jpeg,
    }
