"""
Progress reporting for TenantGuard.

Scans publish one ScanProgress event per resolved source; bulk
deployments publish one DeployProgress event per control. Events are
delivered to terminal, callback or quiet renderers.
"""

from __future__ import annotations

import logging
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanProgress:
    """
    Scan progress event.

    Attributes:
        total: Number of sources in the scan
        completed: Sources resolved so far
        current: Source that just resolved, or a phase label
    """

    total: int
    completed: int
    current: str = ""

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return min(100.0, self.completed / self.total * 100)

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.completed >= self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "current": self.current,
            "percent": round(self.percent, 1),
        }


@dataclass(frozen=True)
class DeployProgress:
    """
    Bulk deployment progress event.

    Attributes:
        total: Controls in the batch
        completed: Controls processed so far
        succeeded: Controls that reached success
        exists: Controls that already existed
        failed: Controls that failed
        current: Control id that was just processed
    """

    total: int
    completed: int
    succeeded: int = 0
    exists: int = 0
    failed: int = 0
    current: str = ""

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return min(100.0, self.completed / self.total * 100)

    @property
    def is_complete(self) -> bool:
        return self.completed >= self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "succeeded": self.succeeded,
            "exists": self.exists,
            "failed": self.failed,
            "current": self.current,
            "percent": round(self.percent, 1),
        }


ProgressEvent = Union[ScanProgress, DeployProgress]


class ProgressRenderer(ABC):
    """
    Abstract base for progress renderers.

    Renderers display progress events on different outputs
    (terminal, callbacks, nothing).
    """

    @abstractmethod
    def render(self, event: ProgressEvent) -> None:
        """
        Render a progress event.

        Args:
            event: Progress event
        """
        pass

    @abstractmethod
    def finish(self, event: ProgressEvent) -> None:
        """
        Render the final event of an operation.

        Args:
            event: Final progress event
        """
        pass


class TerminalProgressRenderer(ProgressRenderer):
    """
    Renders progress to the terminal.

    Rewrites one line in place when the output is a TTY, prints one line
    per event otherwise.
    """

    def __init__(self, output: Any = None, bar_width: int = 30):
        self._output = output or sys.stderr
        self._bar_width = bar_width
        self._is_tty = hasattr(self._output, "isatty") and self._output.isatty()

    def render(self, event: ProgressEvent) -> None:
        line = self._build_line(event)
        if self._is_tty:
            self._output.write(f"\r\033[K{line}")
        else:
            self._output.write(f"  {line}\n")
        self._output.flush()

    def finish(self, event: ProgressEvent) -> None:
        if self._is_tty:
            self._output.write("\r\033[K")
        if isinstance(event, DeployProgress):
            summary = (
                f"Deployed {event.completed}/{event.total}: "
                f"{event.succeeded} succeeded, {event.exists} existed, "
                f"{event.failed} failed"
            )
        else:
            summary = f"Scanned {event.completed}/{event.total} sources"
        self._output.write(f"✓ {summary}\n")
        self._output.flush()

    def _build_line(self, event: ProgressEvent) -> str:
        filled = int(self._bar_width * event.percent / 100)
        bar = f"[{'█' * filled}{'░' * (self._bar_width - filled)}]"
        return f"{bar} {event.completed}/{event.total} {event.current}"


class CallbackProgressRenderer(ProgressRenderer):
    """Renders progress via callbacks, for embedding in other tools."""

    def __init__(
        self,
        on_update: Callable[[ProgressEvent], None] | None = None,
        on_complete: Callable[[ProgressEvent], None] | None = None,
    ):
        self._on_update = on_update
        self._on_complete = on_complete

    def render(self, event: ProgressEvent) -> None:
        if self._on_update:
            self._on_update(event)

    def finish(self, event: ProgressEvent) -> None:
        if self._on_complete:
            self._on_complete(event)


class QuietProgressRenderer(ProgressRenderer):
    """Silent progress renderer that does nothing."""

    def render(self, event: ProgressEvent) -> None:
        pass

    def finish(self, event: ProgressEvent) -> None:
        pass


class ProgressPublisher:
    """
    Fans progress events out to renderers.

    Safe to call from scan worker threads. A failing renderer never
    affects the operation being reported.
    """

    def __init__(self, renderers: list[ProgressRenderer] | None = None):
        self._renderers = list(renderers) if renderers else []
        self._lock = threading.Lock()

    def add_renderer(self, renderer: ProgressRenderer) -> None:
        with self._lock:
            self._renderers.append(renderer)

    def publish(self, event: ProgressEvent) -> None:
        """Deliver an event to every renderer."""
        with self._lock:
            for renderer in self._renderers:
                try:
                    renderer.render(event)
                except Exception as e:
                    logger.debug(f"Progress renderer failed: {e}")

    def finish(self, event: ProgressEvent) -> None:
        """Deliver the final event of an operation."""
        with self._lock:
            for renderer in self._renderers:
                try:
                    renderer.finish(event)
                except Exception as e:
                    logger.debug(f"Progress renderer failed: {e}")


def create_progress_publisher(
    quiet: bool = False,
    callback: Callable[[ProgressEvent], None] | None = None,
) -> ProgressPublisher:
    """
    Create a progress publisher with appropriate renderers.

    Args:
        quiet: Suppress terminal output
        callback: Optional callback for progress updates

    Returns:
        Configured ProgressPublisher
    """
    renderers: list[ProgressRenderer] = []

    if not quiet:
        renderers.append(TerminalProgressRenderer())

    if callback:
        renderers.append(CallbackProgressRenderer(on_update=callback))

    if not renderers:
        renderers.append(QuietProgressRenderer())

    return ProgressPublisher(renderers=renderers)
