# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
APP segment payload decoders

This module classifies the payload of each framed segment once, when the
segment is framed:

- APP1 "Exif\\0\\0": TIFF directory chain (see tiff_parser)
- APP1 XMP namespace identifier: standard or ExtendedXMP chunk
- APP0 "JFIF\\0": JFIF header fields
- anything else: generic payload, kept as raw bytes in the segment view

Copyright 2025 DNAi inc.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from picsplit.byte_source import BIG_ENDIAN, ByteSource
from picsplit.exceptions import ByteSourceError, FramingError, TiffError, XmpDecodeError
from picsplit.tiff_parser import TiffFile, TiffParser
from picsplit.xmp_parser import XMP_EXTENDED_ID, XMP_STANDARD_ID, XmpChunk

logger = logging.getLogger(__name__)


EXIF_IDENTIFIER = b'Exif\x00\x00'
JFIF_IDENTIFIER = b'JFIF\x00'
DIGEST_LENGTH = 32


@dataclass
class GenericPayload:
    """Payload with no decoded structure."""

    def __str__(self) -> str:
        return ""


@dataclass
class JfifPayload:
    """APP0 JFIF header."""
    identifier: str
    version: int
    units: int
    x_density: int
    y_density: int
    x_thumbnail: int
    y_thumbnail: int

    def __str__(self) -> str:
        return (
            f"  identifier: {self.identifier}\n"
            f"  version: {self.version:04x}\n"
            f"  units: {self.units}\n"
            f"  Density WxH: {self.x_density}x{self.y_density}\n"
            f"  Thumbnail WxH: {self.x_thumbnail}x{self.y_thumbnail}\n"
        )


@dataclass
class ExifPayload:
    """
    APP1 Exif payload.

    tiff is None when the TIFF structure could not be decoded (or Exif
    decoding was turned off); error then holds the reason.
    """
    tiff: Optional[TiffFile] = None
    error: Optional[str] = None
    identifier: str = 'Exif'

    def __str__(self) -> str:
        text = f"  identifier: {self.identifier}\n"
        if self.tiff is not None:
            text += str(self.tiff)
        elif self.error:
            text += f"  error: {self.error}\n"
        return text


@dataclass
class XmpPayload:
    """APP1 XMP payload (standard packet or ExtendedXMP chunk)."""
    chunk: XmpChunk

    @property
    def identifier(self) -> str:
        return self.chunk.identifier

    def __str__(self) -> str:
        return f"  identifier: {self.identifier}\n" + str(self.chunk)


SegmentPayload = Union[GenericPayload, JfifPayload, ExifPayload, XmpPayload]


class App1Decoder:
    """
    Decoder for APP1 payloads.

    The first 6 bytes select the kind: "Exif\\0\\0" starts a TIFF stream,
    anything else is the start of a NUL-terminated XMP namespace URI.
    """

    def __init__(self, decode_exif: bool = True, strict_exif: bool = False, max_ifds: int = 64):
        """
        Initialize the decoder.

        Args:
            decode_exif: Decode the TIFF directories of Exif payloads
            strict_exif: Re-raise TIFF errors instead of keeping them on the payload
            max_ifds: Longest IFD chain followed
        """
        self.decode_exif = decode_exif
        self.strict_exif = strict_exif
        self.max_ifds = max_ifds

    def decode(self, payload: ByteSource) -> Union[ExifPayload, XmpPayload]:
        """
        Decode an APP1 payload view.

        Raises:
            XmpDecodeError: If the identifier is not recognized or an
                ExtendedXMP header is truncated
            TiffError: If strict_exif is set and the TIFF stream is malformed
        """
        payload.seek(0)
        try:
            ident = payload.read(6)
        except ByteSourceError as e:
            raise XmpDecodeError("APP1 payload too short for an identifier",
                                 payload.file_offset) from e

        if ident == EXIF_IDENTIFIER:
            return self._decode_exif(payload)
        return self._decode_xmp(ident, payload)

    def _decode_exif(self, payload: ByteSource) -> ExifPayload:
        if not self.decode_exif:
            return ExifPayload()
        offset = len(EXIF_IDENTIFIER)
        tiff_view = payload.section(offset)
        try:
            tiff = TiffParser(tiff_view, payload.file_offset + offset, self.max_ifds).parse()
        except TiffError as e:
            if self.strict_exif:
                raise
            logger.warning("Exif segment at 0x%08x not decoded: %s", payload.file_offset, e)
            return ExifPayload(error=str(e))
        return ExifPayload(tiff=tiff)

    def _decode_xmp(self, ident: bytes, payload: ByteSource) -> XmpPayload:
        if b'\x00' in ident:
            raw = ident.split(b'\x00', 1)[0]
            payload.seek(len(raw) + 1)
        else:
            raw = ident + payload.read_until_nul()
        identifier = raw.decode('ascii', errors='replace')

        if identifier == XMP_STANDARD_ID:
            return XmpPayload(XmpChunk(identifier=identifier, payload=payload.read_all()))

        if identifier == XMP_EXTENDED_ID:
            try:
                digest = payload.read(DIGEST_LENGTH)
                full_length = payload.read_uint32(BIG_ENDIAN)
                offset_in_full = payload.read_uint32(BIG_ENDIAN)
            except ByteSourceError as e:
                raise XmpDecodeError("Truncated ExtendedXMP header", e.offset) from e
            return XmpPayload(XmpChunk(
                identifier=identifier,
                payload=payload.read_all(),
                digest=digest,
                full_length=full_length,
                offset_in_full=offset_in_full,
            ))

        raise XmpDecodeError(
            f"Unrecognized APP1 payload: identifier {identifier!r}", payload.file_offset
        )


def decode_jfif(payload: ByteSource) -> Union[JfifPayload, GenericPayload]:
    """
    Decode an APP0 payload.

    Non-JFIF APP0 payloads (e.g. JFXX extensions) are kept generic.

    Raises:
        FramingError: If a JFIF header is truncated
    """
    payload.seek(0)
    if payload.remaining < len(JFIF_IDENTIFIER) or payload.read(5) != JFIF_IDENTIFIER:
        return GenericPayload()
    try:
        return JfifPayload(
            identifier='JFIF',
            version=payload.read_uint16(),
            units=payload.read_uint8(),
            x_density=payload.read_uint16(),
            y_density=payload.read_uint16(),
            x_thumbnail=payload.read_uint8(),
            y_thumbnail=payload.read_uint8(),
        )
    except ByteSourceError as e:
        raise FramingError("Truncated JFIF header", e.offset) from e
