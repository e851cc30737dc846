# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Exception classes for picsplit

This module defines the exceptions raised while framing JPEG containers,
decoding Exif directories and XMP packets, and extracting embedded images.

Copyright 2025 DNAi inc.
"""

from typing import Optional


class PicSplitError(Exception):
    """
    Base exception for all picsplit errors.

    All picsplit exceptions inherit from this class, allowing
    catch-all error handling for any picsplit-related errors.
    """
    def __init__(self, message: str = "", offset: Optional[int] = None):
        """
        Initialize the exception with an optional error message.

        Args:
            message: Descriptive error message explaining what went wrong
            offset: Absolute file offset of the malformed bytes, if known
        """
        self.message = message
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset 0x{offset:08x})"
        super().__init__(message)


class ByteSourceError(PicSplitError):
    """
    Raised when a read or seek falls outside a byte source.

    This exception is raised when:
    - Fewer bytes remain than a read requested
    - A seek targets a position before the start or past the end
    - A sub-view would extend past its parent view
    """
    pass


class FramingError(PicSplitError):
    """
    Raised when a JPEG container violates the expected marker layout.

    This exception is raised when:
    - The stream does not start with SOI or end with EOI
    - The first segment after SOI is neither APP0 nor APP1
    - A segment length field is invalid or runs past the end of the file
    - The compressed data region between SOS and EOI is empty
    """
    pass


class TiffError(PicSplitError):
    """
    Raised when a TIFF header or image file directory is malformed.

    Only the Exif decode is affected; the rest of the container
    is still framed and its XMP is still collected.
    """
    pass


class XmpDecodeError(PicSplitError):
    """
    Raised when an APP1 payload or an XMP document cannot be decoded.

    This exception is raised when:
    - The APP1 identifier is neither Exif nor a known XMP namespace
    - An ExtendedXMP header is truncated
    """
    pass


class SchemaValidationError(PicSplitError):
    """
    Raised when decoded XMP does not match a supported image schema.

    This exception is raised when:
    - XMP is present but none of its documents could be decoded
    - Legacy depth metadata is missing its payloads or mime types
    - Embedded base64 payloads cannot be decoded
    """
    pass


class ContainerFormatError(SchemaValidationError):
    """
    Raised when a resource container directory is invalid.

    This exception is raised when:
    - The directory items have unexpected mime types, URIs or lengths
    - The listed images do not fit in the compressed data region
    """
    pass
