import struct

import pytest

from conftest import tiff_stream
from picsplit.byte_source import ByteSource
from picsplit.exceptions import TiffError
from picsplit.tiff_parser import IFDType, TiffParser, decode, element_size


def le(fmt, *values):
    return struct.pack('<' + fmt, *values)


def test_header_byte_order_and_first_ifd():
    tiff = decode(ByteSource(tiff_stream([(0x0100, IFDType.SHORT, 1, le('HH', 640, 0))])))
    assert tiff.byte_order == '<'
    assert tiff.first_ifd_offset == 8
    assert tiff.ifds[0].entries[0].values == [640]


def test_big_endian_stream():
    stream = tiff_stream([(0x0101, IFDType.LONG, 1, struct.pack('>I', 480))], byte_order='>')
    tiff = decode(ByteSource(stream))
    assert tiff.byte_order_name == 'BigEndian'
    assert tiff.find(0x0101).values == [480]


def test_invalid_byte_order():
    with pytest.raises(TiffError, match='byte order'):
        decode(ByteSource(b'XX\x2a\x00\x08\x00\x00\x00'))


def test_invalid_magic():
    with pytest.raises(TiffError, match='magic'):
        decode(ByteSource(b'II\x2b\x00\x08\x00\x00\x00'), base_offset=100)


def test_short_pair_is_inline_and_short_triple_is_offset():
    stream = tiff_stream([
        (0x0102, IFDType.SHORT, 2, le('HH', 8, 16)),
        (0x0103, IFDType.SHORT, 3, le('I', 200)),
    ])
    pair, triple = decode(ByteSource(stream)).ifds[0].entries
    assert pair.is_inline
    assert pair.values == [8, 16]
    assert not triple.is_inline
    assert triple.values is None
    assert triple.value_offset == 200


def test_slot_stride_is_four_bytes_even_when_fewer_are_used():
    stream = tiff_stream([
        (0x0001, IFDType.BYTE, 1, b'\x07\xaa\xbb\xcc'),
        (0x0002, IFDType.SBYTE, 2, b'\xff\x01\x00\x00'),
        (0x0003, IFDType.SSHORT, 1, le('hH', -5, 0xffff)),
    ])
    entries = decode(ByteSource(stream)).ifds[0].entries
    assert [e.values for e in entries] == [[7], [-1, 1], [-5]]


def test_rational_is_recorded_without_values():
    stream = tiff_stream([
        (0x011A, IFDType.RATIONAL, 1, le('I', 26)),
        (0x9204, IFDType.SRATIONAL, 0, le('I', 0)),
    ])
    rational, empty = decode(ByteSource(stream)).ifds[0].entries
    assert rational.ifd_type == IFDType.RATIONAL
    assert rational.values is None
    assert rational.value_offset == 26
    assert empty.values is None


def test_unknown_type_has_zero_element_size():
    assert element_size(12) == 0
    stream = tiff_stream([(0x0001, 12, 5, le('I', 99))])
    entry = decode(ByteSource(stream)).ifds[0].entries[0]
    assert entry.is_inline
    assert entry.values is None


def test_chain_of_two_ifds():
    stream = tiff_stream(
        [(0x0100, IFDType.SHORT, 1, le('HH', 1, 0))],
        next_ifds=[[(0x0201, IFDType.LONG, 1, le('I', 1234))]],
    )
    tiff = decode(ByteSource(stream))
    assert len(tiff.ifds) == 2
    assert tiff.ifds[0].next_index == 1
    assert tiff.ifds[1].next_index is None
    assert tiff.ifds[1].get(0x0201).values == [1234]


def test_cyclic_chain_is_rejected():
    stream = bytearray(tiff_stream([(0x0100, IFDType.SHORT, 1, le('HH', 1, 0))]))
    # point the next-IFD link of IFD0 back at itself
    stream[-4:] = le('I', 8)
    with pytest.raises(TiffError, match='loops'):
        decode(ByteSource(bytes(stream)))


def test_chain_length_cap():
    stream = tiff_stream(
        [(0x0100, IFDType.SHORT, 1, le('HH', 1, 0))],
        next_ifds=[[(0x0100, IFDType.SHORT, 1, le('HH', 2, 0))]] * 3,
    )
    with pytest.raises(TiffError, match='longer than'):
        TiffParser(ByteSource(stream), max_ifds=2).parse()


def test_truncated_directory_raises_tiff_error():
    stream = tiff_stream([(0x0100, IFDType.SHORT, 1, le('HH', 1, 0))])
    with pytest.raises(TiffError, match='Truncated'):
        decode(ByteSource(stream[:-6]), base_offset=30)


def test_next_ifd_offset_out_of_range():
    stream = bytearray(tiff_stream([(0x0100, IFDType.SHORT, 1, le('HH', 1, 0))]))
    stream[-4:] = le('I', 5000)
    with pytest.raises(TiffError, match='Invalid IFD offset'):
        decode(ByteSource(bytes(stream)))


def test_resolve_out_of_line_values():
    entries = [
        (0x010F, IFDType.ASCII, 6, le('I', 38)),
        (0x0111, IFDType.LONG, 2, le('I', 44)),
    ]
    stream = tiff_stream(entries) + b'Pixel\x00' + le('II', 10, 20)
    tiff = decode(ByteSource(stream), base_offset=12)
    make, strips = tiff.ifds[0].entries
    assert make.file_offset == 12 + 38
    assert tiff.resolve_ascii(make) == 'Pixel'
    assert tiff.resolve(strips) == [10, 20]
    assert make.name == 'Make'


def test_resolve_outside_stream_raises():
    stream = tiff_stream([(0x0111, IFDType.LONG, 4, le('I', 400))])
    tiff = decode(ByteSource(stream))
    with pytest.raises(TiffError, match='outside'):
        tiff.resolve(tiff.ifds[0].entries[0])
