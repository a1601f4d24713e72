"""
Hand finished exports to the user.

Two strategies:

- DesktopSave: write the file into an output folder
- MobileOpenOrDownload: put the data in a temporary file, try to open it in
  a viewer, fall back to a copy in the download folder; the temporary file is
  removed after a delay either way

The caller picks one (select_delivery) from its own platform hint.
"""

import logging
import os
import re
import tempfile
import threading
import webbrowser
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from stone_mockup.errors import ExportFatalError
from stone_mockup.fraction_math import decimal_to_fraction
from stone_mockup.models import StoneSpecifications
from stone_mockup.project_config import DeliveryConfig

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_SLUG = "stone-project"


def single_piece_filename(specs: StoneSpecifications, extension: str = "pdf") -> str:
    """stone-mockup-24-1/2x4.pdf (fractions kept as typed)."""
    width = decimal_to_fraction(specs.width)
    height = decimal_to_fraction(specs.height)
    return f"stone-mockup-{width}x{height}.{extension}"


def sanitize_project_name(name: Optional[str]) -> str:
    """Whitespace runs become '-', then lower-case."""
    slug = re.sub(r"\s+", "-", (name or "").strip()).lower()
    return slug or DEFAULT_PROJECT_SLUG


def project_filename(name: Optional[str]) -> str:
    return f"{sanitize_project_name(name)}-stone-project.pdf"


def disk_filename(filename: str) -> str:
    """Filename safe to create on disk ('/' in fractions becomes '_')."""
    return filename.replace("/", "_").replace("\\", "_")


@dataclass
class DeliveryReceipt:
    """What a delivery did with a file.

    Attributes:
        filename: Logical filename, as shown to the user.
        method: "saved", "opened" or "downloaded".
        path: File the user ends up with (None when only opened).
        size: Bytes delivered.
    """
    filename: str
    method: str
    path: Optional[Path] = None
    size: int = 0


class Delivery(ABC):
    """Strategy for handing over an exported file."""

    name = "delivery"

    @abstractmethod
    def deliver(self, data: bytes, filename: str) -> DeliveryReceipt:
        """Deliver ``data`` under ``filename``.

        Raises:
            ExportFatalError: the data could not be handed over.
        """

    def close(self) -> None:
        """Release resources still held by this strategy."""

    def wait_released(self, timeout: Optional[float] = None) -> None:
        """Block until resources scheduled for release are gone."""


def _write_file(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise ExportFatalError(f"Could not write {path}: {exc}") from exc


class DesktopSave(Delivery):
    """Save straight into ``output_dir`` (current directory by default)."""

    name = "desktop"

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        self.output_dir = Path(output_dir) if output_dir else Path.cwd()

    def deliver(self, data: bytes, filename: str) -> DeliveryReceipt:
        path = self.output_dir / disk_filename(filename)
        _write_file(path, data)
        logger.info("Saved %s (%d bytes)", path, len(data))
        return DeliveryReceipt(filename=filename, method="saved", path=path, size=len(data))


class TransientHandle:
    """Temporary file standing in for an in-memory document."""

    def __init__(self, path: Path):
        self.path = path
        self.released = False

    @classmethod
    def create(cls, data: bytes, filename: str) -> "TransientHandle":
        suffix = Path(disk_filename(filename)).suffix
        fd, name = tempfile.mkstemp(prefix="stone-mockup-", suffix=suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return cls(Path(name))

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Released transient file %s", self.path)


class MobileOpenOrDownload(Delivery):
    """Open in a viewer, or fall back to a download copy.

    Args:
        opener: Called with the file URI; a falsy result or an exception
            counts as blocked. Defaults to ``webbrowser.open``.
        download_dir: Fallback folder (``~/Downloads`` by default).
        release_delay: Seconds before the temporary file is removed.
    """

    name = "mobile"

    def __init__(
        self,
        opener: Optional[Callable[[str], bool]] = None,
        download_dir: Optional[Union[str, Path]] = None,
        release_delay: float = 5.0,
    ):
        self.opener = opener or webbrowser.open
        self.download_dir = Path(download_dir) if download_dir else Path.home() / "Downloads"
        self.release_delay = release_delay
        self._timers: Dict[TransientHandle, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def pending_handles(self) -> List[TransientHandle]:
        with self._lock:
            return list(self._timers)

    def deliver(self, data: bytes, filename: str) -> DeliveryReceipt:
        try:
            handle = TransientHandle.create(data, filename)
        except OSError as exc:
            raise ExportFatalError(f"Could not create temporary file: {exc}") from exc

        try:
            if self._try_open(handle):
                logger.info("Opened %s in viewer", filename)
                return DeliveryReceipt(filename=filename, method="opened", size=len(data))

            path = self.download_dir / disk_filename(filename)
            _write_file(path, data)
            logger.info("Viewer blocked, downloaded %s", path)
            return DeliveryReceipt(filename=filename, method="downloaded", path=path,
                                   size=len(data))
        finally:
            self._schedule_release(handle)

    def _try_open(self, handle: TransientHandle) -> bool:
        try:
            return bool(self.opener(handle.uri))
        except Exception as exc:
            logger.warning("Could not open %s: %s", handle.uri, exc)
            return False

    def _schedule_release(self, handle: TransientHandle) -> None:
        timer = threading.Timer(self.release_delay, self._release, args=(handle,))
        timer.daemon = True
        with self._lock:
            self._timers[handle] = timer
        timer.start()

    def _release(self, handle: TransientHandle) -> None:
        with self._lock:
            self._timers.pop(handle, None)
        handle.release()

    def close(self) -> None:
        """Cancel pending timers and release their files now."""
        with self._lock:
            pending = list(self._timers.items())
            self._timers.clear()
        for handle, timer in pending:
            timer.cancel()
            handle.release()

    def wait_released(self, timeout: Optional[float] = None) -> None:
        """Let pending release timers fire, then release anything left.

        A process about to exit calls this so no temporary file outlives it;
        ``timeout`` bounds the wait per timer.
        """
        with self._lock:
            timers = list(self._timers.values())
        for timer in timers:
            timer.join(timeout)
        self.close()


def select_delivery(
    is_mobile: bool,
    config: Optional[DeliveryConfig] = None,
    opener: Optional[Callable[[str], bool]] = None,
) -> Delivery:
    """Delivery strategy for the caller's platform."""
    config = config or DeliveryConfig()
    if is_mobile:
        return MobileOpenOrDownload(
            opener=opener,
            download_dir=config.download_dir or None,
            release_delay=config.release_delay_seconds,
        )
    return DesktopSave(config.output_dir or None)
