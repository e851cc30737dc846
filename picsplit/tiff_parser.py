# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
TIFF directory chain decoder

This module decodes the TIFF structure embedded in a JPEG Exif segment:
the byte-order header followed by a linked chain of Image File
Directories (IFDs). Entries whose values fit in their 4-byte slot are
decoded in place; larger values are left as offsets that callers can
resolve on demand.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, List, Optional

from picsplit.byte_source import BIG_ENDIAN, LITTLE_ENDIAN, ByteSource
from picsplit.exceptions import ByteSourceError, TiffError
from picsplit.exif_tags import tag_name

logger = logging.getLogger(__name__)


class IFDType(IntEnum):
    """TIFF field types"""
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10


# Field type sizes in bytes
ELEMENT_SIZES = {
    IFDType.BYTE: 1,
    IFDType.ASCII: 1,
    IFDType.SHORT: 2,
    IFDType.LONG: 4,
    IFDType.RATIONAL: 8,
    IFDType.SBYTE: 1,
    IFDType.UNDEFINED: 1,
    IFDType.SSHORT: 2,
    IFDType.SLONG: 4,
    IFDType.SRATIONAL: 8,
}

# struct codes for the types we decode; RATIONAL and SRATIONAL are not decoded
VALUE_FORMATS = {
    IFDType.BYTE: 'B',
    IFDType.ASCII: 'B',
    IFDType.SHORT: 'H',
    IFDType.LONG: 'I',
    IFDType.SBYTE: 'b',
    IFDType.UNDEFINED: 'B',
    IFDType.SSHORT: 'h',
    IFDType.SLONG: 'i',
}

BYTE_ORDER_MARKS = {
    0x4949: LITTLE_ENDIAN,  # 'II'
    0x4D4D: BIG_ENDIAN,     # 'MM'
}

TIFF_MAGIC = 0x002A
ENTRY_SIZE = 12


def element_size(ifd_type: int) -> int:
    """Size in bytes of one element of a field type (0 for unknown types)."""
    try:
        return ELEMENT_SIZES[IFDType(ifd_type)]
    except ValueError:
        return 0


def decode_values(source: ByteSource, ifd_type: int, count: int,
                  byte_order: str) -> Optional[List[int]]:
    """
    Decode count elements of ifd_type starting at the cursor of source.

    Returns None for RATIONAL, SRATIONAL and unknown types.
    """
    try:
        fmt = VALUE_FORMATS[IFDType(ifd_type)]
    except (ValueError, KeyError):
        return None
    raw = source.read(struct.calcsize(fmt) * count)
    return list(struct.unpack(f'{byte_order}{count}{fmt}', raw))


@dataclass
class IFDEntry:
    """One 12-byte directory entry."""
    tag: int
    ifd_type: int
    count: int
    value_offset: int = 0
    values: Optional[List[int]] = None
    file_offset: int = 0  # absolute, for diagnostics

    @property
    def name(self) -> str:
        return tag_name(self.tag)

    @property
    def byte_size(self) -> int:
        return element_size(self.ifd_type) * self.count

    @property
    def is_inline(self) -> bool:
        return self.byte_size <= 4

    def __str__(self) -> str:
        return (
            f"    Tag: {self.tag:x}h ({self.name})\n"
            f"    Type: {self.ifd_type}\n"
            f"    Count: {self.count}\n"
            f"    Offset: 0x{self.value_offset:08x} (global: 0x{self.file_offset:08x})\n"
            f"    Value: {self.values}\n"
        )


@dataclass
class IFD:
    """A directory, its header-relative offset and its link to the next one."""
    offset: int
    entries: List[IFDEntry] = field(default_factory=list)
    next_offset: int = 0
    next_index: Optional[int] = None

    def get(self, tag: int) -> Optional[IFDEntry]:
        for entry in self.entries:
            if entry.tag == tag:
                return entry
        return None


@dataclass
class TiffFile:
    """
    Decoded TIFF structure.

    IFDs are stored in chain order; IFD.next_index points into ifds.
    """
    byte_order: str
    first_ifd_offset: int
    base_offset: int
    ifds: List[IFD] = field(default_factory=list)
    source: Optional[ByteSource] = field(default=None, repr=False, compare=False)

    @property
    def byte_order_name(self) -> str:
        return 'LittleEndian' if self.byte_order == LITTLE_ENDIAN else 'BigEndian'

    def find(self, tag: int) -> Optional[IFDEntry]:
        """First entry with tag, searching IFDs in chain order."""
        for ifd in self.ifds:
            entry = ifd.get(tag)
            if entry is not None:
                return entry
        return None

    def resolve(self, entry: IFDEntry) -> Optional[List[int]]:
        """
        Return the values of an entry, reading out-of-line arrays if needed.

        Raises:
            TiffError: If the value array lies outside the TIFF stream
        """
        if entry.values is not None or entry.is_inline:
            return entry.values
        if self.source is None:
            raise TiffError("TIFF stream is not available to resolve values")
        try:
            view = self.source.section(entry.value_offset, entry.byte_size)
            return decode_values(view, entry.ifd_type, entry.count, self.byte_order)
        except ByteSourceError as e:
            raise TiffError(
                f"Value of tag 0x{entry.tag:04x} lies outside the TIFF stream",
                entry.file_offset,
            ) from e

    def resolve_ascii(self, entry: IFDEntry) -> Optional[str]:
        """Decode an ASCII entry as a string, dropping the NUL terminator."""
        if entry.ifd_type != IFDType.ASCII:
            return None
        values = self.resolve(entry) or []
        return bytes(values).split(b'\x00', 1)[0].decode('ascii', errors='replace')

    def __str__(self) -> str:
        lines = [f"  byte order: {self.byte_order_name}\n"]
        for i, ifd in enumerate(self.ifds):
            lines.append(f"    ========= IFD: {i}\n")
            for entry in ifd.entries:
                lines.append(str(entry))
                lines.append("    ----\n")
        return ''.join(lines)


class TiffParser:
    """
    Parser for a TIFF header and its IFD chain.

    The chain is followed with an explicit loop. Offsets already visited
    and chains longer than max_ifds are rejected, so a looping or
    corrupted chain fails with TiffError instead of never terminating.
    """

    def __init__(self, source: ByteSource, base_offset: int = 0, max_ifds: int = 64):
        """
        Initialize TIFF parser.

        Args:
            source: View whose offset 0 is the TIFF header
            base_offset: Absolute file offset of the header, for diagnostics
            max_ifds: Longest chain accepted
        """
        self.source = source
        self.base_offset = base_offset
        self.max_ifds = max_ifds

    def parse(self) -> TiffFile:
        """
        Parse the header and every IFD in the chain.

        Returns:
            TiffFile with IFDs in chain order

        Raises:
            TiffError: If the header or a directory is malformed
        """
        try:
            tiff = self._parse_header()
            self._parse_ifds(tiff)
        except ByteSourceError as e:
            raise TiffError(f"Truncated TIFF structure: {e.message}", e.offset) from e
        return tiff

    def _parse_header(self) -> TiffFile:
        self.source.seek(0)
        mark = self.source.read_uint16(BIG_ENDIAN)
        byte_order = BYTE_ORDER_MARKS.get(mark)
        if byte_order is None:
            raise TiffError(f"Invalid byte order 0x{mark:04x}", self.base_offset)

        magic = self.source.read_uint16(byte_order)
        if magic != TIFF_MAGIC:
            raise TiffError(f"Invalid TIFF magic {magic} (expected 42)", self.base_offset + 2)

        first_ifd_offset = self.source.read_uint32(byte_order)
        return TiffFile(
            byte_order=byte_order,
            first_ifd_offset=first_ifd_offset,
            base_offset=self.base_offset,
            source=self.source,
        )

    def _parse_ifds(self, tiff: TiffFile) -> None:
        visited = set()
        offset = tiff.first_ifd_offset
        while True:
            if offset in visited:
                raise TiffError(
                    f"IFD chain loops back to offset 0x{offset:x}", self.base_offset + offset
                )
            if len(tiff.ifds) >= self.max_ifds:
                raise TiffError(f"IFD chain longer than {self.max_ifds} directories")
            visited.add(offset)

            try:
                self.source.seek(offset)
            except ByteSourceError as e:
                raise TiffError(f"Invalid IFD offset 0x{offset:x}", self.base_offset + offset) from e

            ifd = self._parse_ifd(offset, tiff.byte_order)
            if tiff.ifds:
                tiff.ifds[-1].next_index = len(tiff.ifds)
            tiff.ifds.append(ifd)
            logger.debug("IFD %d at 0x%x: %d entries, next 0x%x",
                         len(tiff.ifds) - 1, offset, len(ifd.entries), ifd.next_offset)

            if ifd.next_offset == 0:
                break
            offset = ifd.next_offset

    def _parse_ifd(self, offset: int, byte_order: str) -> IFD:
        num_entries = self.source.read_uint16(byte_order)
        ifd = IFD(offset=offset)

        for _ in range(num_entries):
            tag = self.source.read_uint16(byte_order)
            ifd_type = self.source.read_uint16(byte_order)
            count = self.source.read_uint32(byte_order)
            entry = IFDEntry(tag=tag, ifd_type=ifd_type, count=count)

            if entry.is_inline:
                # Decode from the slot, then step over all 4 bytes of it
                slot = self.source.tell()
                entry.values = decode_values(self.source, ifd_type, count, byte_order)
                self.source.seek(slot + 4)
            else:
                entry.value_offset = self.source.read_uint32(byte_order)
            entry.file_offset = self.base_offset + entry.value_offset

            ifd.entries.append(entry)

        ifd.next_offset = self.source.read_uint32(byte_order)
        return ifd


def decode(source: ByteSource, base_offset: int = 0, max_ifds: int = 64) -> TiffFile:
    """Decode a TIFF stream whose header starts at offset 0 of source."""
    return TiffParser(source, base_offset, max_ifds).parse()
