import io
import logging

import pytest

from conftest import RDF_OPEN, container_body, xmp_document
from picsplit.exceptions import XmpDecodeError
from picsplit.xmp_parser import (
    XMP_EXTENDED_ID,
    XMP_STANDARD_ID,
    XmpChunk,
    XmpReassembler,
    decode_documents,
    parse_document,
    split_documents,
)


def extended(digest, payload, offset, full_length):
    return XmpChunk(XMP_EXTENDED_ID, payload, digest, full_length, offset)


def test_standard_chunks_keep_file_order():
    xmp = XmpReassembler()
    xmp.add(XmpChunk(XMP_STANDARD_ID, b'first'))
    xmp.add(XmpChunk(XMP_STANDARD_ID, b'second'))
    assert xmp.assemble() == b'firstsecond'
    assert len(xmp) == 2


def test_extended_chunks_sorted_by_offset():
    digest = b'A' * 32
    xmp = XmpReassembler()
    xmp.add(extended(digest, b'c' * 50, 200, 200))
    xmp.add(extended(digest, b'a' * 100, 0, 200))
    xmp.add(extended(digest, b'b' * 50, 100, 200))
    full = xmp.assemble()
    assert len(full) == 200
    assert full == b'a' * 100 + b'b' * 50 + b'c' * 50


def test_standard_payload_precedes_extended_groups():
    xmp = XmpReassembler()
    xmp.add(extended(b'B' * 32, b'2', 0, 1))
    xmp.add(XmpChunk(XMP_STANDARD_ID, b'std'))
    xmp.add(extended(b'C' * 32, b'3', 0, 1))
    xmp.add(extended(b'B' * 32, b'2b', 1, 3))
    assert xmp.assemble() == b'std' + b'22b' + b'3'
    assert list(xmp.extended) == [b'B' * 32, b'C' * 32]


def test_length_mismatch_is_logged(caplog):
    xmp = XmpReassembler()
    xmp.add(extended(b'D' * 32, b'short', 0, 100))
    with caplog.at_level(logging.WARNING, logger='picsplit.xmp_parser'):
        assert xmp.assemble() == b'short'
    assert 'declares 100' in caplog.text


def test_write_packets():
    xmp = XmpReassembler()
    xmp.add(XmpChunk(XMP_STANDARD_ID, b'<a/>'))
    stream = io.BytesIO()
    assert xmp.write_packets(stream) == 4
    assert stream.getvalue() == b'<a/>'


def test_split_concatenated_documents():
    one, two = xmp_document(), xmp_document('GDepth:Near="1"')
    assert split_documents(one + b'\n' + two) == [one + b'\n', two]


def test_split_keeps_document_before_garbage():
    one = xmp_document()
    assert split_documents(one + b'\x00\x00garbage') == [one]


def test_split_stops_at_broken_document():
    one = xmp_document()
    assert split_documents(one + b'<x:xmpmeta><unclosed') == [one]
    assert split_documents(b'not xml') == []
    assert split_documents(b'') == []


def test_parse_depth_fields():
    doc = parse_document(xmp_document(
        'GDepth:Mime="image/png" GDepth:Format="RangeLinear" '
        'GDepth:Near="0.25" GDepth:Far="10" GImage:Mime="image/jpeg" '
        'GDepth:Data="AAAA" GImage:Data="BBBB"'
    ))
    assert doc.depth_mime == 'image/png'
    assert doc.depth_format == 'RangeLinear'
    assert doc.depth_near == 0.25
    assert doc.depth_far == 10.0
    assert doc.depth_data == 'AAAA'
    assert doc.image_mime == 'image/jpeg'
    assert doc.image_data == 'BBBB'


def test_missing_fields_read_as_zero_values():
    doc = parse_document(xmp_document())
    assert doc.depth_mime == ''
    assert doc.depth_near == 0.0
    assert doc.container_items == []


def test_properties_as_child_elements():
    doc = parse_document(xmp_document(body='<GDepth:Format> RangeInverse </GDepth:Format>'))
    assert doc.depth_format == 'RangeInverse'


def test_fields_merged_across_descriptions():
    data = (
        '<x:xmpmeta xmlns:x="adobe:ns:meta/">' + RDF_OPEN
        + '<rdf:Description xmlns:GDepth="http://ns.google.com/photos/1.0/depthmap/"'
        + ' GDepth:Format="RangeInverse"/>'
        + '<rdf:Description xmlns:GDepth="http://ns.google.com/photos/1.0/depthmap/"'
        + ' GDepth:Format="Ignored" GDepth:Far="3.5"/>'
        + '</rdf:RDF></x:xmpmeta>'
    ).encode()
    doc = parse_document(data)
    assert doc.depth_format == 'RangeInverse'
    assert doc.depth_far == 3.5


def test_container_items():
    doc = parse_document(xmp_document(body=container_body([
        ('image/jpeg', 0, 'primary_image'),
        ('image/jpeg', 1234, 'android/depthmap'),
    ])))
    assert [(i.mime, i.length, i.data_uri) for i in doc.container_items] == [
        ('image/jpeg', 0, 'primary_image'),
        ('image/jpeg', 1234, 'android/depthmap'),
    ]
    assert doc.container_items[1].name == 'depthmap'


def test_wrong_root_element():
    with pytest.raises(XmpDecodeError, match='root'):
        parse_document(b'<other/>')


def test_bad_number():
    with pytest.raises(XmpDecodeError, match='GDepth:Near'):
        parse_document(xmp_document('GDepth:Near="close"'))


def test_decode_stops_at_first_bad_document():
    good = xmp_document('GDepth:Format="RangeInverse"')
    bad = xmp_document('GDepth:Near="close"')
    docs = decode_documents(good + bad + good)
    assert len(docs) == 1
    assert docs[0].depth_format == 'RangeInverse'


def test_unbound_prefix_is_logged(caplog):
    good = xmp_document('GDepth:Format="RangeInverse"')
    unbound = xmp_document('foo:bar="1"')
    with caplog.at_level(logging.WARNING, logger='picsplit.xmp_parser'):
        docs = decode_documents(good + unbound)
    assert len(docs) == 1
    assert 'XMP document 1 not decoded' in caplog.text
