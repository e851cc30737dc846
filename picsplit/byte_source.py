# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Bounded random-access views over file bytes

A ByteSource is a window onto an immutable buffer with its own read
cursor. Sub-views share the parent's buffer, so framing a file never
copies segment payloads.

Copyright 2025 DNAi inc.
"""

import io
import struct
from pathlib import Path
from typing import Optional, Union

from picsplit.exceptions import ByteSourceError


BIG_ENDIAN = '>'
LITTLE_ENDIAN = '<'


class ByteSource:
    """
    Length-bounded view over a bytes buffer.

    Offsets passed to seek(), section() and get_bytes() are relative to
    the start of this view. file_offset gives the absolute position of
    the view inside the root buffer, for diagnostics.

    Example:
        >>> src = ByteSource(b'\\xff\\xd8\\xff\\xe0')
        >>> hex(src.read_uint16())
        '0xffd8'
        >>> src.section(2, 2).read(2)
        b'\\xff\\xe0'
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview], offset: int = 0,
                 length: Optional[int] = None):
        """
        Initialize a view.

        Args:
            data: Underlying buffer
            offset: Start of the view inside data
            length: Length of the view (None = rest of data)
        """
        buffer = memoryview(data)
        if length is None:
            length = len(buffer) - offset
        if offset < 0 or length < 0 or offset + length > len(buffer):
            raise ByteSourceError(
                f"View [{offset}, {offset + length}) exceeds buffer of {len(buffer)} bytes"
            )
        self._data = buffer
        self._start = offset
        self._length = length
        self._pos = 0

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'ByteSource':
        """Read a whole file into a new view."""
        with open(file_path, 'rb') as f:
            return cls(f.read())

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"ByteSource(file_offset=0x{self._start:08x}, length={self._length})"

    @property
    def file_offset(self) -> int:
        """Absolute offset of this view in the root buffer."""
        return self._start

    @property
    def remaining(self) -> int:
        return self._length - self._pos

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """
        Move the cursor, like file.seek().

        Seeking exactly to the end is allowed; seeking outside the view
        raises ByteSourceError.
        """
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._pos + offset
        elif whence == io.SEEK_END:
            target = self._length + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")

        if target < 0 or target > self._length:
            raise ByteSourceError(
                f"Seek to {target} outside view of {self._length} bytes",
                self._start + max(target, 0),
            )
        self._pos = target
        return target

    def read(self, size: int) -> bytes:
        """Read exactly size bytes or raise ByteSourceError."""
        if size < 0:
            raise ValueError(f"Negative read size: {size}")
        if size > self.remaining:
            raise ByteSourceError(
                f"Short read: wanted {size} bytes, {self.remaining} available",
                self._start + self._pos,
            )
        begin = self._start + self._pos
        self._pos += size
        return bytes(self._data[begin:begin + size])

    def read_all(self) -> bytes:
        """Read from the cursor to the end of the view."""
        return self.read(self.remaining)

    def read_until_nul(self) -> bytes:
        """
        Read bytes up to a NUL terminator or the end of the view.

        The terminator is consumed but not returned.
        """
        begin = self._start + self._pos
        end = self._start + self._length
        chunk = self._data[begin:end].tobytes()
        nul = chunk.find(b'\x00')
        if nul == -1:
            self._pos = self._length
            return chunk
        self._pos += nul + 1
        return chunk[:nul]

    def _unpack(self, fmt: str, byte_order: str):
        size = struct.calcsize(fmt)
        return struct.unpack(f'{byte_order}{fmt}', self.read(size))[0]

    def read_uint8(self) -> int:
        return self._unpack('B', BIG_ENDIAN)

    def read_int8(self) -> int:
        return self._unpack('b', BIG_ENDIAN)

    def read_uint16(self, byte_order: str = BIG_ENDIAN) -> int:
        return self._unpack('H', byte_order)

    def read_int16(self, byte_order: str = BIG_ENDIAN) -> int:
        return self._unpack('h', byte_order)

    def read_uint32(self, byte_order: str = BIG_ENDIAN) -> int:
        return self._unpack('I', byte_order)

    def read_int32(self, byte_order: str = BIG_ENDIAN) -> int:
        return self._unpack('i', byte_order)

    def section(self, offset: int, length: Optional[int] = None) -> 'ByteSource':
        """
        Create a bounded sub-view starting at offset within this view.

        The sub-view has its own cursor at 0; this view's cursor is not moved.
        """
        if length is None:
            length = self._length - offset
        if offset < 0 or length < 0 or offset + length > self._length:
            raise ByteSourceError(
                f"Section [{offset}, {offset + length}) outside view of {self._length} bytes",
                self._start + max(offset, 0),
            )
        return ByteSource(self._data, self._start + offset, length)

    def get_bytes(self, offset: int = 0, length: Optional[int] = None) -> bytes:
        """Copy a range of this view without moving the cursor."""
        return self.section(offset, length).read_all()
