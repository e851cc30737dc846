# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Core picsplit class

This module provides the main API: frame a JPEG container, decode its
Exif and XMP metadata, and extract the images embedded next to the
primary photo.

Copyright 2025 DNAi inc.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from picsplit.app_segments import App1Decoder, ExifPayload
from picsplit.asset_extractor import AssetExtractor, ExtractionResult
from picsplit.byte_source import ByteSource
from picsplit.config import DecodeOptions
from picsplit.exceptions import FramingError
from picsplit.jpeg_segments import DATA, Segment, SegmentFramer
from picsplit.tiff_parser import TiffFile
from picsplit.xmp_parser import XmpDocument, XmpReassembler

logger = logging.getLogger(__name__)


class PicSplit:
    """
    Main class for inspecting a JPEG container.

    The file is framed once, on first access; every property below reuses
    the framed segments.

    Example:
        >>> with PicSplit('photo.jpg') as pic:
        ...     for segment in pic.segments:
        ...         print(segment)
        ...     result = pic.extract()
        ...     result.save('photo.jpg')
    """

    def __init__(self, file_path: Optional[Union[str, Path]] = None,
                 file_data: Optional[bytes] = None,
                 options: Optional[DecodeOptions] = None):
        """
        Initialize from a path or from bytes.

        Args:
            file_path: Path to the JPEG file
            file_data: JPEG bytes (alternative to file_path)
            options: Decode options (defaults if None)
        """
        if file_path is None and file_data is None:
            raise ValueError("Either file_path or file_data must be provided")
        self.file_path = Path(file_path) if file_path is not None else None
        self.file_data = file_data
        self.options = options or DecodeOptions()
        self._source: Optional[ByteSource] = None
        self._segments: Optional[List[Segment]] = None
        self._reassembler: Optional[XmpReassembler] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        """Drop the loaded bytes and decoded segments."""
        self._source = None
        self._segments = None
        self._reassembler = None

    @property
    def source(self) -> ByteSource:
        if self._source is None:
            if self.file_data is not None:
                self._source = ByteSource(self.file_data)
            else:
                self._source = ByteSource.from_file(self.file_path)
        return self._source

    @property
    def segments(self) -> List[Segment]:
        """Framed segments in file order."""
        if self._segments is None:
            decoder = App1Decoder(
                decode_exif=self.options.decode_exif,
                strict_exif=self.options.strict_exif,
                max_ifds=self.options.max_ifds,
            )
            self._segments = SegmentFramer(self.source, decoder).frame()
            logger.info("%s: %d segments", self.name, len(self._segments))
        return self._segments

    @property
    def name(self) -> str:
        return str(self.file_path) if self.file_path is not None else '<bytes>'

    @property
    def data_segment(self) -> Segment:
        for segment in self.segments:
            if segment.marker == DATA:
                return segment
        raise FramingError("No data segment")

    @property
    def exif(self) -> List[TiffFile]:
        """Decoded TIFF structures of every Exif segment."""
        return [
            segment.data.tiff for segment in self.segments
            if isinstance(segment.data, ExifPayload) and segment.data.tiff is not None
        ]

    @property
    def has_xmp(self) -> bool:
        return any(segment.has_xmp for segment in self.segments)

    @property
    def xmp(self) -> XmpReassembler:
        """XMP chunks of the file, collected in file order."""
        if self._reassembler is None:
            reassembler = XmpReassembler()
            for segment in self.segments:
                if segment.has_xmp:
                    reassembler.add(segment.data.chunk)
            self._reassembler = reassembler
        return self._reassembler

    def xmp_stream(self) -> bytes:
        """The reassembled XMP byte stream."""
        return self.xmp.assemble()

    def xmp_documents(self) -> List[XmpDocument]:
        return self.xmp.documents()

    def extract(self) -> ExtractionResult:
        """
        Extract the embedded images.

        Raises:
            SchemaValidationError: If the XMP matches no supported schema or
                none of it can be decoded
        """
        return AssetExtractor(self.data_segment, self.xmp_documents(), self.has_xmp).extract()

    def dump(self) -> str:
        """Listing of every segment with its decoded payload."""
        return ''.join(segment.dump() for segment in self.segments)
