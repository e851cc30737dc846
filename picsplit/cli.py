# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Command-line interface for picsplit

Lists the marker segments of JPEG files and extracts the images embedded
in them (original image, depth map, confidence map).

Copyright 2025 DNAi inc.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from picsplit import __version__
from picsplit.asset_extractor import SCHEMA_CONTAINER, SCHEMA_DEPTH, ExtractionResult
from picsplit.config import DecodeOptions
from picsplit.core import PicSplit
from picsplit.exceptions import ContainerFormatError, PicSplitError, SchemaValidationError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='picsplit',
        description="picsplit - List JPEG segments and extract embedded depth/auxiliary images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List segments and extract embedded images next to the file
  picsplit photo.jpg

  # Also write the reassembled XMP stream to photo.jpg.xmp
  picsplit --xmp photo.jpg

  # Extract into another directory
  picsplit -o out/ photo.jpg
        """
    )
    parser.add_argument('files', nargs='+', help='JPEG file(s) to process')
    parser.add_argument('-o', '--output-dir', type=str, help='Directory for extracted images')
    parser.add_argument('--xmp', action='store_true', help='Write the reassembled XMP stream to FILE.xmp')
    parser.add_argument('--no-extract', action='store_true', help='Do not extract embedded images')
    parser.add_argument('--list-only', action='store_true', help='Only list segment names, offsets and lengths')
    parser.add_argument('--no-exif', action='store_true', help='Do not decode Exif directories')
    parser.add_argument('--strict-exif', action='store_true', help='Fail on malformed Exif directories')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbose logging (-vv for debug)')
    parser.add_argument('-V', '--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')


def output_prefix(file_path: Path, options: DecodeOptions) -> Path:
    """Prefix for side files: the source path, or its name inside output_dir."""
    if options.output_dir is None:
        return file_path
    return options.output_dir / file_path.name


def report(result: ExtractionResult) -> None:
    if result.schema == SCHEMA_CONTAINER:
        for i, item in enumerate(result.container_items):
            print(
                f"Container: {i}: mime={item.mime} length={item.length} "
                f"uri={item.data_uri} offset={item.offset}",
                file=sys.stderr,
            )
    elif result.schema == SCHEMA_DEPTH:
        print(
            f"xmp: depth format={result.depth_format}, "
            f"near={result.depth_near:f}, far={result.depth_far:f}"
        )


def process_file(file_path: Path, options: DecodeOptions, extract: bool = True,
                 list_only: bool = False) -> None:
    """
    List one file and extract its embedded images.

    Raises:
        PicSplitError: If the file cannot be framed or decoded, or its
            resource container directory is invalid
    """
    with PicSplit(file_path, options=options) as pic:
        for segment in pic.segments:
            print(segment if list_only else segment.dump(), end='\n' if list_only else '')

        if not pic.has_xmp:
            return

        prefix = output_prefix(file_path, options)
        if options.write_xmp:
            xmp_path = Path(f"{prefix}.xmp")
            with open(xmp_path, 'wb') as f:
                pic.xmp.write_packets(f)

        if not extract:
            return
        try:
            result = pic.extract()
        except ContainerFormatError:
            raise
        except SchemaValidationError as e:
            print(f"Unknown XMP format: {e}", file=sys.stderr)
            return
        report(result)
        result.save(prefix)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    options = DecodeOptions(
        decode_exif=not args.no_exif,
        strict_exif=args.strict_exif,
        write_xmp=args.xmp,
        output_dir=args.output_dir,
    )
    if options.output_dir is not None:
        options.output_dir.mkdir(parents=True, exist_ok=True)

    status = 0
    for name in args.files:
        file_path = Path(name)
        if not file_path.exists():
            print(f"Error: File not found: {file_path}", file=sys.stderr)
            status = 1
            continue
        try:
            process_file(file_path, options, extract=not args.no_extract, list_only=args.list_only)
        except PicSplitError as e:
            print(f"Error: {file_path}: {e}", file=sys.stderr)
            status = 1
    return status


if __name__ == "__main__":
    sys.exit(main())
