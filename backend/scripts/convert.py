#!/usr/bin/env python3
"""
Convert PSD files to editable documents and back from the command line.

Usage:
    python scripts/convert.py import <file.psd> [-o out.json] [--editable-text] [--no-enhance] [--quality]
    python scripts/convert.py export <document.json> [-o out] [--zip]

Examples:
    # Import a PSD, text layers as editable text
    python scripts/convert.py import poster.psd -o poster.json --editable-text

    # Export every page of a document (a zip when there are several pages)
    python scripts/convert.py export poster.json -o poster

The JSON written by `import` is an editor document with a single page and
can be fed straight back into `export`.
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path to import psdbridge modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from psdbridge.config import ConversionConfig
from psdbridge.models.elements import EditorDocument
from psdbridge.models.responses import ConversionStatus
from psdbridge.services.batch import batch_export_service
from psdbridge.services.codec import CodecError
from psdbridge.services.importer import import_service


def import_file(
    file_path: Path,
    output: Path = None,
    editable_text: bool = False,
    enhance: bool = True,
    quality: bool = False,
) -> None:
    """Import a PSD and write the editor document as JSON."""
    if not file_path.is_file():
        print(f"Error: File not found: {file_path}", file=sys.stderr)
        sys.exit(1)

    config = ConversionConfig.from_settings(
        rasterize_text=not editable_text,
        enhance_images=enhance,
        quality_mode=quality,
    )

    try:
        result = import_service.import_document(file_path.read_bytes(), config)
    except CodecError as e:
        print(f"Error importing {file_path.name}: {e.message}", file=sys.stderr)
        sys.exit(1)

    page = result.to_page(name=file_path.stem)
    document = EditorDocument(width=result.width, height=result.height, pages=[page])

    output = output or file_path.with_suffix(".json")
    output.write_text(document.model_dump_json(by_alias=True, indent=2), encoding="utf-8")

    summary = result.summary
    print(f"✓ Imported {file_path.name} ({result.width}x{result.height}) -> {output}")
    print(f"  Layers: {summary.total} total, {summary.succeeded} converted, "
          f"{summary.skipped} skipped, {summary.failed} failed")
    for outcome in result.outcomes:
        if outcome.status == ConversionStatus.FAILED:
            print(f"  ✗ [{outcome.layer.index}] {outcome.layer.name}: {outcome.reason}")


def export_file(file_path: Path, output: Path = None, zipped: bool = None) -> None:
    """Export an editor document JSON to PSD (or a zip of PSDs)."""
    if not file_path.is_file():
        print(f"Error: File not found: {file_path}", file=sys.stderr)
        sys.exit(1)

    try:
        document = EditorDocument.model_validate(json.loads(file_path.read_text(encoding="utf-8")))
    except (ValueError, ValidationError) as e:
        print(f"Error: {file_path.name} is not a valid document: {e}", file=sys.stderr)
        sys.exit(1)

    base = output or file_path.with_suffix("")
    try:
        result = batch_export_service.export_document(document, zipped=zipped, filename=base.name)
    except CodecError as e:
        print(f"Error exporting {file_path.name}: {e.message}", file=sys.stderr)
        sys.exit(1)

    for page in result.pages:
        mark = "✓" if page.status == ConversionStatus.SUCCESS else "✗"
        detail = f"{page.exported_layers} layers" if page.error is None else page.error
        print(f"  {mark} Page {page.page_index + 1}: {detail}")

    if result.data is None:
        print("Error: no page could be exported", file=sys.stderr)
        sys.exit(1)

    target = base.parent / result.filename
    target.write_bytes(result.data)
    print(f"✓ Wrote {target} ({len(result.data) / 1024:.1f} KB)")


def main():
    parser = argparse.ArgumentParser(
        description="Convert between PSD files and editable documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command")

    # Import mode
    import_parser = subparsers.add_parser("import", help="PSD -> editor document JSON")
    import_parser.add_argument("file_path", type=Path, help="PSD file to import")
    import_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Output JSON path (default: next to the input)",
    )
    import_parser.add_argument(
        "--editable-text",
        action="store_true",
        help="Import text layers as editable text instead of images",
    )
    import_parser.add_argument(
        "--no-enhance",
        action="store_true",
        help="Skip upscaling and sharpening of image layers",
    )
    import_parser.add_argument(
        "--quality",
        action="store_true",
        help="Use the higher quality upscale factor",
    )

    # Export mode
    export_parser = subparsers.add_parser("export", help="Editor document JSON -> PSD")
    export_parser.add_argument("file_path", type=Path, help="Document JSON to export")
    export_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Output path without extension (default: next to the input)",
    )
    export_parser.add_argument(
        "--zip",
        action="store_true",
        default=None,
        help="Always write a zip archive, even for a single page",
    )

    args = parser.parse_args()

    if args.command == "import":
        import_file(
            file_path=args.file_path,
            output=args.output,
            editable_text=args.editable_text,
            enhance=not args.no_enhance,
            quality=args.quality,
        )
    elif args.command == "export":
        export_file(
            file_path=args.file_path,
            output=args.output,
            zipped=args.zip,
        )
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
