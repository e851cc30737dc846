# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Embedded image extractor

Cameras store auxiliary images next to the primary photo in two ways,
both described by the XMP documents of the file:

- Resource container (newer): the second XMP document lists the images
  stored back to back at the end of the compressed data region, by
  length only. Offsets are rebuilt from the end of the file.
- Legacy depth map: the second XMP document carries the depth map and
  the original image as base64 attributes (GDepth:Data, GImage:Data).

Copyright 2025 DNAi inc.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Union

from picsplit.exceptions import ByteSourceError, ContainerFormatError, SchemaValidationError
from picsplit.jpeg_segments import DATA, EOI, Segment
from picsplit.xmp_parser import ContainerItem, XmpDocument

logger = logging.getLogger(__name__)


MIME_JPEG = 'image/jpeg'
MIME_PNG = 'image/png'

EXTENSIONS = {
    MIME_JPEG: '.jpg',
    MIME_PNG: '.png',
}

SCHEMA_CONTAINER = 'container'
SCHEMA_DEPTH = 'depth'

# Expected data URIs of the resource container directory, in order
CONTAINER_URIS = (
    'primary_image',
    'android/original_image',
    'android/depthmap',
    'android/confidencemap',
)

EOI_BYTES = EOI.to_bytes(2, 'big')


@dataclass
class ExtractedAsset:
    """One image carved out of the container."""
    name: str
    mime: str
    data: bytes

    @property
    def extension(self) -> str:
        return EXTENSIONS.get(self.mime, '.bin')

    def filename(self, prefix: Union[str, Path]) -> str:
        return f"{prefix}.{self.name}{self.extension}"


@dataclass
class ExtractionResult:
    """
    Outcome of an extraction.

    schema is None when the file carries no XMP to extract from.
    """
    schema: Optional[str] = None
    assets: List[ExtractedAsset] = field(default_factory=list)
    container_items: List[ContainerItem] = field(default_factory=list)
    depth_format: str = ''
    depth_near: float = 0.0
    depth_far: float = 0.0

    def get(self, name: str) -> Optional[ExtractedAsset]:
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None

    def save(self, prefix: Union[str, Path]) -> List[Path]:
        """
        Write every asset to "<prefix>.<name><extension>".

        Returns:
            Paths written, in asset order
        """
        written = []
        for asset in self.assets:
            path = Path(asset.filename(prefix))
            with open(path, 'wb') as f:
                f.write(asset.data)
            logger.info("Wrote %s (%d bytes)", path, len(asset.data))
            written.append(path)
        return written


class AssetExtractor:
    """
    Extracts embedded images using the decoded XMP documents.

    Example:
        >>> extractor = AssetExtractor(data_segment, documents)
        >>> result = extractor.extract()
        >>> result.save('photo.jpg')
    """

    def __init__(self, data_segment: Segment, documents: List[XmpDocument],
                 has_xmp: bool = False):
        """
        Initialize the extractor.

        Args:
            data_segment: The synthetic Data segment of the file
            documents: XMP documents in stream order
            has_xmp: Whether the file carried XMP chunks at all
        """
        if data_segment.marker != DATA:
            raise ValueError(f"Expected the Data segment, got {data_segment.name}")
        self.data_segment = data_segment
        self.documents = documents
        self.has_xmp = has_xmp

    def extract(self) -> ExtractionResult:
        """
        Select a schema and extract its assets.

        Returns:
            ExtractionResult (empty when the file carries no XMP)

        Raises:
            SchemaValidationError: If the documents match no supported schema,
                or XMP is present but no document could be decoded
            ContainerFormatError: If the resource container directory is invalid
            ByteSourceError: If a container item lies outside the data region
        """
        if not self.documents:
            if self.has_xmp:
                raise SchemaValidationError("No decodable XMP document")
            logger.debug("No XMP: nothing to extract")
            return ExtractionResult()

        if len(self.documents) > 1 and len(self.documents[1].container_items) == 4:
            logger.debug("Using resource container schema")
            return self._extract_container(self.documents[1].container_items)

        logger.debug("Using legacy depth schema")
        return self._extract_depth()

    def _extract_container(self, directory: List[ContainerItem]) -> ExtractionResult:
        self._validate_container(directory)

        lengths = sum(item.length for item in directory[1:])
        base = self.data_segment.length + len(EOI_BYTES) - lengths
        if base < 0:
            raise ContainerFormatError(
                f"Container items ({lengths} bytes) exceed the data region "
                f"({self.data_segment.length} bytes)",
                self.data_segment.file_offset,
            )

        result = ExtractionResult(schema=SCHEMA_CONTAINER)
        # offsets go on copies, the decoded documents are left as read
        items = [replace(directory[0], offset=0)]
        offset = base
        for item in directory[1:]:
            items.append(replace(item, offset=offset))
            offset += item.length
        result.container_items = items

        for item in items[1:]:
            logger.debug("Container item %s: offset %d, %d bytes", item.data_uri, item.offset, item.length)
            result.assets.append(ExtractedAsset(
                name=item.name,
                mime=item.mime,
                data=self.carve(item.offset, item.length),
            ))
        return result

    @staticmethod
    def _validate_container(items: List[ContainerItem]) -> None:
        problems = []
        for i, (item, uri) in enumerate(zip(items, CONTAINER_URIS)):
            if item.mime != MIME_JPEG:
                problems.append(f"item {i} mime {item.mime!r}")
            if item.data_uri != uri:
                problems.append(f"item {i} uri {item.data_uri!r} (expected {uri!r})")
            if i == 0 and item.length != 0:
                problems.append(f"item 0 length {item.length}")
            if i > 0 and item.length <= 0:
                problems.append(f"item {i} length {item.length}")
        if problems:
            raise ContainerFormatError("Unknown container format: " + ", ".join(problems))

    def carve(self, offset: int, length: int) -> bytes:
        """
        Copy [offset, offset + length) out of the data region.

        An image stored last in the file shares its EOI marker with the
        outer file, so a range ending exactly 2 bytes past the data region
        gets that marker appended.

        Raises:
            ByteSourceError: If the range falls short of the data by any other amount
        """
        data_length = self.data_segment.length
        end = offset + length
        trailer = end == data_length + len(EOI_BYTES)
        if offset < 0 or offset > data_length or (end > data_length and not trailer):
            raise ByteSourceError(
                f"Range [{offset}, {end}) outside data region of {data_length} bytes",
                self.data_segment.file_offset + max(offset, 0),
            )
        if not trailer:
            return self.data_segment.payload.get_bytes(offset, length)
        return self.data_segment.payload.get_bytes(offset, data_length - offset) + EOI_BYTES

    def _extract_depth(self) -> ExtractionResult:
        documents = self.documents
        if len(documents) != 2:
            raise SchemaValidationError(
                f"Insufficient documents for depth schema: found {len(documents)}, expected 2"
            )
        first, second = documents
        if not second.depth_data or not second.image_data:
            raise SchemaValidationError("Second XMP document has no GDepth:Data or GImage:Data")
        if not any(doc.depth_mime in (MIME_JPEG, MIME_PNG) for doc in documents):
            raise SchemaValidationError("No supported GDepth:Mime declared")
        if not any(doc.image_mime == MIME_JPEG for doc in documents):
            raise SchemaValidationError("No supported GImage:Mime declared")

        merged = XmpDocument(
            depth_mime=first.depth_mime or second.depth_mime,
            depth_format=first.depth_format or second.depth_format,
            depth_near=first.depth_near or second.depth_near,
            depth_far=first.depth_far or second.depth_far,
            depth_data=second.depth_data,
            image_mime=first.image_mime or second.image_mime,
            image_data=second.image_data,
        )

        result = ExtractionResult(
            schema=SCHEMA_DEPTH,
            depth_format=merged.depth_format,
            depth_near=merged.depth_near,
            depth_far=merged.depth_far,
        )
        depth_mime = MIME_JPEG if merged.depth_mime == MIME_JPEG else MIME_PNG
        result.assets.append(ExtractedAsset('depth', depth_mime, _b64decode(merged.depth_data, 'GDepth:Data')))
        result.assets.append(ExtractedAsset('image', MIME_JPEG, _b64decode(merged.image_data, 'GImage:Data')))
        return result


def _b64decode(text: str, what: str) -> bytes:
    """Decode standard padded base64, ignoring line breaks."""
    try:
        return base64.b64decode(''.join(text.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise SchemaValidationError(f"Invalid base64 in {what}: {e}") from e


def extract(data_segment: Segment, documents: List[XmpDocument],
            has_xmp: bool = False) -> ExtractionResult:
    """Extract the embedded images of a framed file."""
    return AssetExtractor(data_segment, documents, has_xmp).extract()
