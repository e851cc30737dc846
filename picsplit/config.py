# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Decode options

Copyright 2025 DNAi inc.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class DecodeOptions:
    """
    Options controlling how a container is decoded and where assets go.

    Attributes:
        decode_exif: Decode the TIFF directory chain of Exif APP1 segments
        max_ifds: Longest IFD chain followed before giving up
        strict_exif: Abort the whole file on a malformed Exif segment
        write_xmp: Write the reassembled XMP stream next to the source (CLI)
        output_dir: Directory for extracted assets (None = next to the source)
    """
    decode_exif: bool = True
    max_ifds: int = 64
    strict_exif: bool = False
    write_xmp: bool = False
    output_dir: Optional[Path] = None

    def __post_init__(self):
        if self.max_ifds < 1:
            raise ValueError(f"max_ifds must be positive, got {self.max_ifds}")
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)
