"""
Batch processing for stone mockups.

Provides:
- Mockup images (PNG/SVG) for every piece of a project
- Project PDFs for every project file in a folder
- Progress tracking and reporting
- Parallel processing (threads, one RenderEngine per task)

Usage:
    from stone_mockup.batch import batch_export_projects

    results = batch_export_projects(
        input_dir="./projects",
        output_dir="./exports",
        parallel=True,
    )
    print(results.summary())
"""

import functools
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import anyio

from stone_mockup.drawing.engine import RenderEngine
from stone_mockup.export.delivery import DesktopSave, disk_filename, single_piece_filename
from stone_mockup.export.pipeline import ExportPipeline
from stone_mockup.io.project_loader import load_project
from stone_mockup.models import RenderOptions, StonePiece, StoneProject
from stone_mockup.project_config import CONFIG_FILENAME, ProjectConfig, load_config

logger = logging.getLogger(__name__)

IMAGE_FORMATS = ("png", "svg")

ProgressCallback = Callable[[int, int, "ConversionResult"], None]


@dataclass
class ConversionResult:
    """Result of one output file."""
    source: str
    output_path: Optional[Path] = None
    success: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0
    failed_pieces: List[int] = field(default_factory=list)

    @property
    def status(self) -> str:
        if not self.success:
            return "FAILED"
        return "PARTIAL" if self.failed_pieces else "OK"


@dataclass
class BatchResult:
    """Result of a batch run."""
    results: List[ConversionResult] = field(default_factory=list)
    total_duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total == 0:
            return 0.0
        return 100.0 * self.successful / self.total

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            "Batch Export Summary",
            "=" * 40,
            f"Total outputs:   {self.total}",
            f"Successful:      {self.successful}",
            f"Failed:          {self.failed}",
            f"Success rate:    {self.success_rate:.1f}%",
            f"Total time:      {self.total_duration_seconds:.1f}s",
            "",
        ]

        partial = [r for r in self.results if r.success and r.failed_pieces]
        if partial:
            lines.append("Exported with placeholders:")
            for r in partial:
                pieces = ", ".join(str(i + 1) for i in r.failed_pieces)
                lines.append(f"  - {r.source}: pieces {pieces}")

        if self.failed > 0:
            lines.append("Failed:")
            for r in self.results:
                if not r.success:
                    lines.append(f"  - {r.source}: {r.error}")

        return "\n".join(lines)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "total_duration_seconds": self.total_duration_seconds,
            "results": [
                {
                    "source": r.source,
                    "output": str(r.output_path) if r.output_path else None,
                    "success": r.success,
                    "error": r.error,
                    "duration": r.duration_seconds,
                    "failed_pieces": r.failed_pieces,
                }
                for r in self.results
            ],
        }


def _run_tasks(
    tasks: Sequence[Callable[[], ConversionResult]],
    parallel: bool,
    max_workers: Optional[int],
    progress_callback: Optional[ProgressCallback],
) -> List[ConversionResult]:
    results: List[ConversionResult] = []
    total = len(tasks)

    def report(i: int, result: ConversionResult) -> None:
        results.append(result)
        if progress_callback:
            progress_callback(i, total, result)
        logger.info("[%d/%d] %s: %s (%.2fs)",
                    i, total, result.source, result.status, result.duration_seconds)

    if parallel:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(task) for task in tasks]
            for i, future in enumerate(as_completed(futures), 1):
                report(i, future.result())
    else:
        for i, task in enumerate(tasks, 1):
            report(i, task())
    return results


def mockup_filename(index: int, piece: StonePiece, fmt: str) -> str:
    """'03-stone-mockup-24x4.png'; the index keeps equal-sized pieces apart."""
    return f"{index + 1:02d}-{disk_filename(single_piece_filename(piece.specs, fmt))}"


def render_piece_mockup(
    piece: StonePiece,
    index: int,
    output_dir: Path,
    fmt: str,
    engine: RenderEngine,
    options: Optional[RenderOptions] = None,
) -> ConversionResult:
    """Render one piece to ``output_dir`` as PNG or SVG."""
    start_time = time.perf_counter()
    output_path = output_dir / mockup_filename(index, piece, fmt)
    result = ConversionResult(source=f"piece {index + 1} ({fmt})")

    try:
        if fmt == "svg":
            engine.render_svg(piece, options).save(str(output_path))
        elif fmt == "png":
            artifact = engine.render_artifact(piece, options)
            output_path.write_bytes(artifact.to_png_bytes())
        else:
            raise ValueError(f"Unsupported image format: {fmt}")
        result.success = True
        result.output_path = output_path
    except Exception as e:
        result.error = str(e)
        logger.error("Failed to render piece %d: %s", index + 1, e)

    result.duration_seconds = time.perf_counter() - start_time
    return result


def render_project_mockups(
    project: StoneProject,
    output_dir: Union[str, Path],
    formats: Sequence[str] = ("png",),
    parallel: bool = False,
    max_workers: Optional[int] = None,
    config: Optional[ProjectConfig] = None,
    options: Optional[RenderOptions] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> BatchResult:
    """Write one mockup image per piece and format.

    Args:
        project: Project whose pieces are rendered
        output_dir: Output directory (created if missing)
        formats: Any of "png", "svg"
        parallel: Render in worker threads
        max_workers: Maximum worker threads (None = executor default)
        config: Configuration (defaults)
        options: Render options for every piece
        progress_callback: Called after each file: (current, total, result)
    """
    start_time = time.perf_counter()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    config = config or ProjectConfig()

    for fmt in formats:
        if fmt not in IMAGE_FORMATS:
            raise ValueError(f"Unsupported image format {fmt!r}; expected one of {IMAGE_FORMATS}")

    shared_engine = RenderEngine(config)

    def make_task(index: int, piece: StonePiece, fmt: str) -> Callable[[], ConversionResult]:
        def task() -> ConversionResult:
            # The pattern cache is not thread-safe, so threads get their own engine
            engine = RenderEngine(config) if parallel else shared_engine
            return render_piece_mockup(piece, index, output_dir, fmt, engine, options)
        return task

    tasks = [
        make_task(index, piece, fmt)
        for index, piece in enumerate(project.pieces)
        for fmt in formats
    ]
    logger.info("Rendering %d mockups for %r, parallel=%s", len(tasks), project.name, parallel)
    results = _run_tasks(tasks, parallel, max_workers, progress_callback)

    return BatchResult(results=results, total_duration_seconds=time.perf_counter() - start_time)


def find_project_files(
    input_dir: Union[str, Path],
    pattern: str = "*.json",
    recursive: bool = False,
) -> List[Path]:
    """Project files in a directory (configuration files are skipped).

    Raises:
        FileNotFoundError: directory does not exist
        NotADirectoryError: path is not a directory
    """
    input_dir = Path(input_dir)

    if not input_dir.exists():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not input_dir.is_dir():
        raise NotADirectoryError(f"Not a directory: {input_dir}")

    found = input_dir.rglob(pattern) if recursive else input_dir.glob(pattern)
    files = sorted(p for p in set(found) if p.is_file() and p.name != CONFIG_FILENAME)

    logger.info("Found %d project files in %s", len(files), input_dir)
    return files


def export_project_file(
    project_path: Path,
    output_dir: Path,
    config: Optional[ProjectConfig] = None,
    options: Optional[RenderOptions] = None,
) -> ConversionResult:
    """Load one project file and export it as a multi-piece PDF."""
    start_time = time.perf_counter()
    result = ConversionResult(source=project_path.name)

    try:
        project = load_project(project_path)
        pipeline = ExportPipeline(config)
        export = functools.partial(pipeline.export_project, project, options,
                                   delivery=DesktopSave(output_dir))
        exported = anyio.run(export)
        result.success = True
        result.output_path = exported.receipt.path if exported.receipt else None
        result.failed_pieces = exported.failed_pieces
    except Exception as e:
        result.error = str(e)
        logger.error("Failed to export %s: %s", project_path.name, e)

    result.duration_seconds = time.perf_counter() - start_time
    return result


def batch_export_projects(
    input_dir: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    pattern: str = "*.json",
    recursive: bool = False,
    config: Optional[ProjectConfig] = None,
    config_path: Optional[Union[str, Path]] = None,
    parallel: bool = False,
    max_workers: Optional[int] = None,
    options: Optional[RenderOptions] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> BatchResult:
    """Export every project file in ``input_dir`` to a PDF.

    Args:
        input_dir: Directory containing project files
        output_dir: Output directory (default: same as input)
        pattern: Glob pattern for project files
        recursive: Search subdirectories
        config: Configuration; loaded from ``config_path`` or the input
            directory when omitted
        config_path: Path to a .stonemockup.json file
        parallel: Export in worker threads, one event loop per project
        max_workers: Maximum worker threads
        options: Render options for every piece
        progress_callback: Called after each file: (current, total, result)

    Returns:
        BatchResult with export statistics
    """
    start_time = time.perf_counter()

    input_dir = Path(input_dir)
    output_dir = Path(output_dir) if output_dir else input_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    if config is None:
        config = load_config(project_path=input_dir / "project.json", explicit_config=config_path)

    project_files = find_project_files(input_dir, pattern, recursive)
    if not project_files:
        logger.warning("No project files found in %s", input_dir)
        return BatchResult(total_duration_seconds=time.perf_counter() - start_time)

    logger.info("Starting batch export: %d projects, parallel=%s", len(project_files), parallel)

    tasks: List[Callable[[], ConversionResult]] = [
        functools.partial(export_project_file, path, output_dir, config, options)
        for path in project_files
    ]
    results = _run_tasks(tasks, parallel, max_workers, progress_callback)

    batch_result = BatchResult(
        results=results,
        total_duration_seconds=time.perf_counter() - start_time,
    )
    logger.info(
        "Batch export complete: %d/%d successful (%.1f%%) in %.1fs",
        batch_result.successful, batch_result.total,
        batch_result.success_rate, batch_result.total_duration_seconds,
    )
    return batch_result
