"""
Command line entry point: stone mockups and PDF exports.

Usage:
    python main.py render WIDTH HEIGHT [-o mockup.png|mockup.svg] [piece options]
    python main.py export WIDTH HEIGHT [--notes TEXT] [--output-dir DIR] [piece options]
    python main.py project PROJECT.json [--output-dir DIR]
    python main.py batch INPUT_DIR [-o OUTPUT_DIR] [--parallel]
    python main.py init-config [PATH]

Examples:
    python main.py render 24-1/2 4 --edges top,bottom -o counter.svg
    python main.py export 36 25-1/4 --material granite --thickness 3cm --notes "Sink cutout"
    python main.py --mobile project kitchen.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Labels contain "×" and inch marks
if sys.stdout.encoding and sys.stdout.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')
if sys.stderr.encoding and sys.stderr.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stderr.reconfigure(encoding='utf-8', errors='replace')

import anyio

from stone_mockup.batch import batch_export_projects
from stone_mockup.drawing.engine import RenderEngine
from stone_mockup.errors import ExportFatalError, MockupError
from stone_mockup.export.delivery import select_delivery
from stone_mockup.export.pipeline import ExportPipeline
from stone_mockup.fraction_math import parse_dimension
from stone_mockup.io.project_loader import load_project
from stone_mockup.logging_config import setup_logging
from stone_mockup.models import (
    MATERIAL_TYPES,
    THICKNESSES,
    RenderOptions,
    StonePiece,
    StoneSpecifications,
)
from stone_mockup.project_config import (
    CONFIG_FILENAME,
    ProjectConfig,
    create_sample_config,
    load_config,
)

logger = logging.getLogger("stone_mockup.cli")


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------

def _add_piece_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("width", help='Width in inches: 24, 3/4 or 24-1/2.')
    parser.add_argument("height", help="Height in inches, same notation.")
    parser.add_argument(
        "--edges", "-e",
        default="",
        help="Polished edges, comma separated: top,bottom,left,right.",
    )
    parser.add_argument(
        "--material", "-m",
        default="quartz",
        help=f"Material ({', '.join(MATERIAL_TYPES)}). Default: quartz.",
    )
    parser.add_argument(
        "--thickness", "-t",
        default="2cm",
        help=f"Slab thickness ({', '.join(THICKNESSES)}). Default: 2cm.",
    )
    parser.add_argument("--quantity", "-q", type=int, default=1, help="Number of pieces.")
    parser.add_argument("--notes", default="", help="Free-text notes for the export.")


def _add_render_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--no-grid", action="store_true", help="Hide the inch grid.")
    parser.add_argument("--no-edges", action="store_true", help="Hide polished edges.")
    parser.add_argument("--no-x-marks", action="store_true",
                        help="Plain lines on polished edges, no cross marks.")
    parser.add_argument("--scale", type=float, default=1.0,
                        help="Zoom factor on top of the fit-to-canvas scale (0.5-2).")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stone-mockup",
        description="Annotated stone piece mockups and PDF exports.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", "-c", default=None,
                        help=f"Path to a {CONFIG_FILENAME} configuration file.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    parser.add_argument("--log-json", default=None, dest="log_json",
                        help="Also write JSON-lines logs to this file.")
    parser.add_argument("--mobile", action="store_true",
                        help="Open exports in a viewer instead of saving them directly.")

    commands = parser.add_subparsers(dest="command", required=True)

    render = commands.add_parser("render", help="Render one mockup to PNG or SVG.")
    _add_piece_arguments(render)
    _add_render_arguments(render)
    render.add_argument("--output", "-o", default=None,
                        help="Output file; .svg writes SVG, anything else PNG.")

    export = commands.add_parser("export", help="Export one piece as a PDF.")
    _add_piece_arguments(export)
    _add_render_arguments(export)
    export.add_argument("--output-dir", default=None, dest="output_dir",
                        help="Folder for the PDF (default from configuration).")
    export.add_argument("--png", action="store_true", help="Export the image as PNG instead.")

    project = commands.add_parser("project", help="Export a project file as one PDF.")
    project.add_argument("project_file", help="Project JSON file.")
    project.add_argument("--name", default=None, help="Override the project name.")
    project.add_argument("--output-dir", default=None, dest="output_dir",
                         help="Folder for the PDF (default from configuration).")
    _add_render_arguments(project)

    batch = commands.add_parser("batch", help="Export every project file in a folder.")
    batch.add_argument("input_dir", help="Folder with project JSON files.")
    batch.add_argument("--output", "-o", dest="output_dir", default=None,
                       help="Output folder (default: the input folder).")
    batch.add_argument("--pattern", "-p", default="*.json", help="File pattern.")
    batch.add_argument("--recursive", "-r", action="store_true", help="Search subfolders.")
    batch.add_argument("--parallel", action="store_true", help="Export in parallel.")
    batch.add_argument("--jobs", "-j", type=int, dest="max_workers", default=None,
                       help="Maximum parallel jobs.")

    init = commands.add_parser("init-config", help="Write a sample configuration file.")
    init.add_argument("path", nargs="?", default=CONFIG_FILENAME)

    return parser


def _specs_from_args(args: argparse.Namespace) -> StoneSpecifications:
    return StoneSpecifications(
        width=parse_dimension(args.width),
        height=parse_dimension(args.height),
        polished_edges=args.edges,
        material_type=args.material,
        thickness=args.thickness,
        quantity=args.quantity,
    )


def _options_from_args(args: argparse.Namespace, config: ProjectConfig) -> RenderOptions:
    return RenderOptions(
        show_grid=not args.no_grid,
        show_polished_edges=not args.no_edges,
        use_x_marks=not args.no_x_marks,
        scale=args.scale,
        padding=config.render.padding,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_render(args: argparse.Namespace, config: ProjectConfig) -> int:
    piece = StonePiece(specs=_specs_from_args(args), notes=args.notes)
    options = _options_from_args(args, config)
    engine = RenderEngine(config)

    output = Path(args.output) if args.output else Path("stone-mockup.png")
    if output.suffix.lower() == ".svg":
        engine.render_svg(piece, options).save(str(output))
    else:
        output.write_bytes(engine.render_artifact(piece, options).to_png_bytes())
        logger.info("PNG saved: %s", output)
    return 0


def _delivery_for(args: argparse.Namespace, config: ProjectConfig):
    if getattr(args, "output_dir", None):
        config.delivery.output_dir = args.output_dir
    return select_delivery(args.mobile, config.delivery)


def _cmd_export(args: argparse.Namespace, config: ProjectConfig) -> int:
    piece = StonePiece(specs=_specs_from_args(args), notes=args.notes)
    pipeline = ExportPipeline(config)
    artifact = pipeline.engine.render_artifact(piece, _options_from_args(args, config))
    delivery = _delivery_for(args, config)

    try:
        if args.png:
            result = pipeline.export_to_png(artifact, delivery=delivery)
        else:
            result = pipeline.export_to_pdf(artifact, delivery=delivery)
    finally:
        delivery.wait_released()
    print(f"{result.filename}: {result.receipt.method}")
    return 0


def _cmd_project(args: argparse.Namespace, config: ProjectConfig) -> int:
    project = load_project(args.project_file)
    if args.name:
        project.name = args.name
    pipeline = ExportPipeline(config)
    options = _options_from_args(args, config)
    delivery = _delivery_for(args, config)

    async def run():
        return await pipeline.export_project(project, options, delivery=delivery)

    try:
        result = anyio.run(run)
    finally:
        delivery.wait_released()
    print(f"{result.filename}: {result.receipt.method}, {len(project.pieces)} pieces")
    if result.failed_pieces:
        pieces = ", ".join(str(i + 1) for i in result.failed_pieces)
        print(f"Placeholders used for pieces: {pieces}")
    return 0


def _cmd_batch(args: argparse.Namespace, config: ProjectConfig) -> int:
    result = batch_export_projects(
        input_dir=args.input_dir,
        output_dir=args.output_dir,
        pattern=args.pattern,
        recursive=args.recursive,
        config=config,
        parallel=args.parallel,
        max_workers=args.max_workers,
    )
    print("\n" + result.summary())
    return 0 if result.failed == 0 else 1


def _cmd_init_config(args: argparse.Namespace, config: ProjectConfig) -> int:
    path = create_sample_config(args.path)
    print(f"Configuration written to {path}")
    return 0


_COMMANDS = {
    "render": _cmd_render,
    "export": _cmd_export,
    "project": _cmd_project,
    "batch": _cmd_batch,
    "init-config": _cmd_init_config,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_file=args.log_json,
    )

    project_path = getattr(args, "project_file", None)
    config = load_config(project_path=project_path, explicit_config=args.config)

    try:
        return _COMMANDS[args.command](args, config)
    except ExportFatalError as exc:
        logger.critical("Export failed: %s", exc)
        return 2
    except MockupError as exc:
        logger.critical("%s", exc)
        return 1
    except Exception as exc:
        logger.critical("Unexpected error: %s", exc, exc_info=True)
        return 2


if __name__ == "__main__":
    sys.exit(main())
