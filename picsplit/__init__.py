# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
picsplit - JPEG container decoder and embedded image extractor

Frames JPEG files into marker segments, decodes Exif directories and
(Extended) XMP packets, and extracts the depth maps, confidence maps and
original images that cameras embed next to the primary photo.

This is a pure Python implementation: all parsing is done by reading
the binary file structures directly.

Copyright 2025 DNAi inc.
"""

__version__ = "0.1.0"
__author__ = "DNAi inc."

from picsplit.core import PicSplit
from picsplit.config import DecodeOptions
from picsplit.byte_source import ByteSource
from picsplit.exceptions import (
    PicSplitError,
    ByteSourceError,
    FramingError,
    TiffError,
    XmpDecodeError,
    SchemaValidationError,
    ContainerFormatError,
)
from picsplit.jpeg_segments import Segment, SegmentFramer, frame, marker_name
from picsplit.tiff_parser import IFD, IFDEntry, IFDType, TiffFile, TiffParser
from picsplit.xmp_parser import XmpChunk, XmpDocument, XmpReassembler, decode_documents
from picsplit.asset_extractor import AssetExtractor, ExtractedAsset, ExtractionResult

__all__ = [
    'PicSplit',
    'DecodeOptions',
    'ByteSource',
    'PicSplitError',
    'ByteSourceError',
    'FramingError',
    'TiffError',
    'XmpDecodeError',
    'SchemaValidationError',
    'ContainerFormatError',
    'Segment',
    'SegmentFramer',
    'frame',
    'marker_name',
    'IFD',
    'IFDEntry',
    'IFDType',
    'TiffFile',
    'TiffParser',
    'XmpChunk',
    'XmpDocument',
    'XmpReassembler',
    'decode_documents',
    'AssetExtractor',
    'ExtractedAsset',
    'ExtractionResult',
]
