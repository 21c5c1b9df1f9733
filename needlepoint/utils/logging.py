from __future__ import annotations
"""Rich logging & a live progress bar driven by execution events.

Plain log records go through a :class:`rich.logging.RichHandler`; a
:class:`ProgressReporter` attached to an :class:`EventBus` turns
``started`` / ``nodeUpdate`` / ``completed`` events into a progress bar.
"""
from typing import Any, Dict
from logging import Logger, getLogger, INFO, DEBUG, WARNING, ERROR, basicConfig

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, BarColumn, TextColumn, TimeElapsedColumn

from needlepoint.core.model import NodeStatus
from needlepoint.utils.events import (
    EventBus,
    ExecutionCancelled,
    ExecutionCompleted,
    ExecutionError,
    ExecutionStarted,
    NodeUpdate,
    WaveStarted,
)
from needlepoint.utils.dag import build_rich_tree

console = Console()

__all__ = [
    "console",
    "get",
    "log",
    "ProgressReporter",
    "show_plan_tree",
]

_LEVEL_MAP = {
    "info": INFO,
    "debug": DEBUG,
    "warning": WARNING,
    "error": ERROR,
}

basicConfig(
    level=INFO,
    format="%(message)s",
    datefmt="%H:%M:%S",
    handlers=[RichHandler(console=console, rich_tracebacks=True, markup=False)],
)

log: Logger = getLogger("needlepoint")


def get(level: str = "info") -> Logger:  # noqa: D401
    """Return the package logger set to *level* (str)."""
    lvl = _LEVEL_MAP.get(level.lower(), INFO)
    lg = getLogger("needlepoint")
    lg.setLevel(lvl)
    return lg


# --------------------------------------------------------------------------- #
# Progress handling
# --------------------------------------------------------------------------- #
class ProgressReporter:
    """Bar over all planned nodes; advances once per settled node."""

    def __init__(self, bus: EventBus, *, transient: bool = True):
        self.bus = bus
        self.transient = transient
        self.progress: Progress | None = None
        self._task: int | None = None
        self.counts: Dict[str, int] = {"complete": 0, "error": 0}

        bus.subscribe(ExecutionStarted)(self.on_started)
        bus.subscribe(WaveStarted)(self.on_wave)
        bus.subscribe(NodeUpdate)(self.on_node)
        bus.subscribe(ExecutionCompleted)(self.on_finished)
        bus.subscribe(ExecutionCancelled)(self.on_finished)
        bus.subscribe(ExecutionError)(self.on_error)

    def _ensure_progress(self) -> Progress:
        if self.progress is None:
            self.progress = Progress(
                TextColumn("[bold blue]{task.description}[/]"),
                BarColumn(),
                "{task.percentage:>3.0f}%",
                TextColumn("[green]{task.completed}/{task.total}[/]"),
                "•",
                TimeElapsedColumn(),
                console=console,
                transient=self.transient,
            )
            self.progress.start()
        return self.progress

    def on_started(self, evt: ExecutionStarted):  # noqa: D401 – event hook
        prog = self._ensure_progress()
        self._task = prog.add_task("generating", total=evt.total_nodes)

    def on_wave(self, evt: WaveStarted):  # noqa: D401 – event hook
        if self.progress is not None and self._task is not None:
            self.progress.update(self._task, description=f"wave {evt.wave_number}")

    def on_node(self, evt: NodeUpdate):  # noqa: D401 – event hook
        if evt.status == NodeStatus.GENERATING.value:
            return
        self.counts[evt.status] = self.counts.get(evt.status, 0) + 1
        if evt.status == NodeStatus.ERROR.value:
            log.warning("node %s failed: %s", evt.node_id, evt.message)
        if self.progress is not None and self._task is not None:
            self.progress.update(self._task, advance=1)

    def on_error(self, evt: ExecutionError):  # noqa: D401 – event hook
        self.stop()
        log.error("execution failed: %s", evt.message)

    def on_finished(self, evt: Any):  # noqa: D401 – event hook
        self.stop()

    def stop(self) -> None:
        if self.progress is not None:
            self.progress.stop()
            self.progress = None
            self._task = None

    def detach(self) -> None:
        """Unsubscribe every hook from the bus."""
        self.stop()
        self.bus.unsubscribe(ExecutionStarted, self.on_started)
        self.bus.unsubscribe(WaveStarted, self.on_wave)
        self.bus.unsubscribe(NodeUpdate, self.on_node)
        self.bus.unsubscribe(ExecutionCompleted, self.on_finished)
        self.bus.unsubscribe(ExecutionCancelled, self.on_finished)
        self.bus.unsubscribe(ExecutionError, self.on_error)


def show_plan_tree(plan: Any, graph: Any = None):  # noqa: D401
    """Print the wave tree of *plan*."""
    console.print(build_rich_tree(plan, graph))
