# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG marker segment framer

This module walks a JPEG byte stream into its marker segments in a single
forward pass:

    SOI, APP0|APP1, ... up to and including SOS, Data, EOI

"Data" is a synthetic segment covering the entropy-coded bytes between
the SOS payload and the trailing EOI marker. Its marker value (1) is a
sentinel and never appears in a file.

Copyright 2025 DNAi inc.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from picsplit.app_segments import (
    App1Decoder,
    GenericPayload,
    SegmentPayload,
    XmpPayload,
    decode_jfif,
)
from picsplit.byte_source import BIG_ENDIAN, ByteSource
from picsplit.exceptions import ByteSourceError, FramingError

logger = logging.getLogger(__name__)


# Marker codes
UNKNOWN = 0x0000
DATA = 0x0001      # synthetic compressed data segment
SOI = 0xFFD8       # Start of Image
APP0 = 0xFFE0      # Application Segment 0 (JFIF)
APP1 = 0xFFE1      # Application Segment 1 (Exif / XMP)
APP2 = 0xFFE2      # Application Segment 2 (Flashpix / ICC / MPF)
COM = 0xFFFE       # Comment
DQT = 0xFFDB       # Define Quantization Table
DHT = 0xFFC4       # Define Huffman Table
DRI = 0xFFDD       # Define Restart Interval
SOF = 0xFFC0       # Start of Frame (Baseline DCT)
SOS = 0xFFDA       # Start of Scan
EOI = 0xFFD9       # End of Image

MARKER_NAMES = {
    UNKNOWN: "Unknown",
    SOI: "SOI",
    APP0: "APP0",
    APP1: "APP1",
    APP2: "APP2",
    COM: "COM",
    DQT: "DQT",
    DHT: "DHT",
    DRI: "DRI",
    SOF: "SOF",
    SOS: "SOS",
    DATA: "Data",
    EOI: "EOI",
}

# Markers without a length field
STANDALONE_MARKERS = (SOI, EOI)


def marker_name(marker: int) -> str:
    """Name of a marker, or its code in hex when unknown."""
    return MARKER_NAMES.get(marker, f"{marker:04x}")


@dataclass
class Segment:
    """
    A framed marker segment.

    length excludes the marker and the length field; file_offset is the
    absolute offset of the payload.
    """
    marker: int
    length: int
    file_offset: int
    payload: ByteSource = field(repr=False, compare=False)
    data: SegmentPayload = field(default_factory=GenericPayload, repr=False, compare=False)

    @property
    def name(self) -> str:
        return marker_name(self.marker)

    @property
    def has_xmp(self) -> bool:
        return isinstance(self.data, XmpPayload)

    def raw(self) -> bytes:
        """Copy of the payload bytes."""
        return self.payload.get_bytes()

    def __str__(self) -> str:
        return f"{self.name}: {self.file_offset:08x}, {self.length}[bytes]"

    def dump(self) -> str:
        """Summary line followed by the decoded payload details."""
        return f"{self}\n{self.data}"


class SegmentFramer:
    """
    Frames a JPEG byte stream into segments.

    APP1 payloads are decoded by App1Decoder and APP0 payloads by the
    JFIF decoder as soon as their segment is framed.
    """

    def __init__(self, source: ByteSource, app1_decoder: Optional[App1Decoder] = None):
        """
        Initialize the framer.

        Args:
            source: View over the whole JPEG file
            app1_decoder: Decoder for APP1 payloads (default options if None)
        """
        self.source = source
        self.app1_decoder = app1_decoder or App1Decoder()

    def frame(self) -> List[Segment]:
        """
        Frame the whole stream.

        Returns:
            Segments in file order

        Raises:
            FramingError: If the stream is not a well-formed JPEG container
            XmpDecodeError: If an APP1 payload has an unknown identifier
        """
        try:
            return self._frame()
        except ByteSourceError as e:
            raise FramingError(f"Unexpected end of data: {e.message}", e.offset) from e

    def _frame(self) -> List[Segment]:
        src = self.source
        src.seek(0)
        segments = []

        # SOI
        marker, length = self._read_marker_length()
        if marker != SOI:
            raise FramingError(f"Expected SOI (ffd8), found {marker:04x}", 0)
        segments.append(self._segment(marker, length, src.tell()))

        # APP1 (Exif) or APP0 (JFIF)
        position = src.tell()
        marker, length = self._read_marker_length()
        if marker not in (APP0, APP1):
            raise FramingError(f"Expected APP0/APP1, found {marker:04x}", position)
        segments.append(self._payload_segment(marker, length, position))

        # Everything up to and including SOS
        while marker != SOS:
            position = src.tell()
            marker, length = self._read_marker_length()
            segments.append(self._payload_segment(marker, length, position))

        # Compressed data, up to the 2-byte EOI at the end of the file
        data_offset = src.tell()
        end = src.seek(-2, io.SEEK_END)
        data_length = end - data_offset
        if data_length <= 0:
            raise FramingError(f"Invalid length of data: {data_length}", data_offset)
        segments.append(self._segment(DATA, data_length, data_offset))

        # EOI
        marker, length = self._read_marker_length()
        if marker != EOI:
            raise FramingError(f"Expected EOI (ffd9), found {marker:04x}", end)
        segments.append(self._segment(marker, length, src.tell()))

        logger.debug("Framed %d segments", len(segments))
        return segments

    def _read_marker_length(self) -> Tuple[int, int]:
        marker = self.source.read_uint16(BIG_ENDIAN)
        if marker in STANDALONE_MARKERS:
            return marker, 0
        return marker, self.source.read_uint16(BIG_ENDIAN)

    def _segment(self, marker: int, length: int, offset: int) -> Segment:
        segment = Segment(marker, length, self.source.file_offset + offset,
                          self.source.section(offset, length))
        logger.debug("%s", segment)
        return segment

    def _payload_segment(self, marker: int, field_length: int, position: int) -> Segment:
        """Frame a length-bearing segment and skip past its payload."""
        if marker in STANDALONE_MARKERS:
            raise FramingError(f"Unexpected {marker_name(marker)} marker", position)
        if field_length < 2:
            raise FramingError(
                f"Invalid length {field_length} of {marker_name(marker)} segment", position
            )
        offset = self.source.tell()
        length = field_length - 2  # the length field counts itself
        if length > self.source.remaining:
            raise FramingError(
                f"{marker_name(marker)} segment of {length} bytes runs past the end of the file",
                position,
            )

        segment = self._segment(marker, length, offset)
        if marker == APP1:
            segment.data = self.app1_decoder.decode(segment.payload)
        elif marker == APP0:
            segment.data = decode_jfif(segment.payload)
        self.source.seek(offset + length)
        return segment


def frame(source: ByteSource, app1_decoder: Optional[App1Decoder] = None) -> List[Segment]:
    """Frame a JPEG byte stream into segments."""
    return SegmentFramer(source, app1_decoder).frame()
