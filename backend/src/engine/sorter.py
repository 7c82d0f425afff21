"""Sort engine — incremental pixel sort with progress and supersession.

A run is a generator that processes ``chunk_lines`` scan lines per resume and
then yields, so whatever drives it (the ZMQ poll loop, a test, a script)
stays responsive between chunks. After every chunk the working buffer is
published as a read-only snapshot; observers never see a half-written chunk.

There is no cancel: starting a new run (or loading/rotating the image)
bumps the engine generation, and the previous run notices the mismatch on
its next resume and ends as SUPERSEDED.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generator

import numpy as np
import sentry_sdk

from effects.sort.config import SortConfig
from effects.sort.lines import line_count
from effects.sort.process import sort_lines
from image.frames import ensure_rgba, rotate_clockwise

logger = logging.getLogger(__name__)

ProgressListener = Callable[[float, np.ndarray], None]


class SortStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    SUPERSEDED = "superseded"
    ERROR = "error"


@dataclass
class SortRun:
    """Tracks state of one sort run."""

    generation: int
    config: SortConfig
    total_lines: int
    processed_lines: int = 0
    status: SortStatus = SortStatus.RUNNING
    error: str | None = None

    @property
    def progress(self) -> float:
        """Percent of scan lines processed, 0-100."""
        if self.total_lines == 0:
            return 0.0
        return self.processed_lines / self.total_lines * 100

    @property
    def complete(self) -> bool:
        return self.status == SortStatus.COMPLETE


def _frozen(frame: np.ndarray) -> np.ndarray:
    snapshot = frame.copy()
    snapshot.setflags(write=False)
    return snapshot


def _log_context(run: SortRun) -> dict:
    return {
        "generation": run.generation,
        "mode": run.config.mode.value,
        "processed_lines": run.processed_lines,
        "total_lines": run.total_lines,
    }


class SortEngine:
    """Owns one source image and at most one in-flight sort run.

    Construct one per editing session; nothing here is shared between
    instances.
    """

    def __init__(self, image: np.ndarray | None = None):
        self._source: np.ndarray | None = None
        self._published: np.ndarray | None = None
        self._run: SortRun | None = None
        self._task: Generator[float, None, None] | None = None
        self._generation = 0
        self._listeners: list[ProgressListener] = []
        self._executing = False
        if image is not None:
            self.load(image)

    @property
    def source(self) -> np.ndarray | None:
        """The loaded image (read-only)."""
        return self._source

    @property
    def working(self) -> np.ndarray | None:
        """Last published buffer of the current run (read-only), or None."""
        return self._published

    @property
    def run(self) -> SortRun | None:
        return self._run

    @property
    def progress(self) -> float:
        if self._run is None:
            return 0.0
        return self._run.progress

    @property
    def busy(self) -> bool:
        return self._task is not None

    @property
    def generation(self) -> int:
        return self._generation

    # --- image ---

    def load(self, image: np.ndarray):
        """Replace the source image. Supersedes any in-flight run.

        Raises:
            ValueError: If ``image`` is not a non-empty (H, W, 3|4) array.
        """
        frame = ensure_rgba(np.asarray(image))
        if frame.shape[0] == 0 or frame.shape[1] == 0:
            raise ValueError(f"image has no pixels: shape {frame.shape}")
        self._supersede()
        self._source = _frozen(frame)
        self._published = None
        logger.info("Loaded %dx%d image", frame.shape[1], frame.shape[0])

    def rotate(self) -> bool:
        """Rotate the source 90° clockwise. Returns False when nothing is loaded.

        Supersedes any in-flight run, so the rotation is in place before the
        next sort starts.
        """
        if self._source is None:
            return False
        self._supersede()
        self._source = _frozen(rotate_clockwise(self._source))
        self._published = None
        logger.debug("Rotated source to %dx%d", self._source.shape[1], self._source.shape[0])
        return True

    # --- runs ---

    def start(self, config: SortConfig | dict | None = None) -> SortRun | None:
        """Start a new run, superseding the current one.

        Returns None without doing anything when no image is loaded.

        Raises:
            SortConfigError: If the configuration is invalid.
        """
        if self._source is None:
            logger.debug("Sort requested with no image loaded, ignoring")
            return None
        if isinstance(config, SortConfig):
            config = config.validate()
        else:
            config = SortConfig.from_params(config)

        self._supersede()
        working = self._source.copy()
        run = SortRun(
            generation=self._generation,
            config=config,
            total_lines=line_count(working.shape, config.orientation),
        )
        self._run = run
        self._published = _frozen(working)
        self._task = self._execute(run, working)
        logger.info(
            "Sort run %d started: %s, %d lines in chunks of %d",
            run.generation,
            config.mode.value,
            run.total_lines,
            config.chunk_lines,
            extra=_log_context(run),
        )
        return run

    def step(self) -> bool:
        """Process one chunk of the current run. Returns True while work remains.

        Raises:
            Exception: Whatever the chunk raised; the run is marked ERROR first.
        """
        task = self._task
        if task is None:
            return False
        try:
            next(task)
            return True
        except StopIteration:
            if self._task is task:
                self._task = None
            return self._task is not None
        except Exception as e:
            if self._task is task:
                self._task = None
            run = self._run
            if run is not None:
                run.status = SortStatus.ERROR
                run.error = f"Sort failed: {type(e).__name__}"
            sentry_sdk.capture_exception(e)
            logger.exception(
                "Sort run failed", extra=_log_context(run) if run is not None else None
            )
            raise

    def run_until_complete(self) -> SortRun | None:
        """Drive the current run to the end without yielding to anyone else."""
        while self.step():
            pass
        return self._run

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Call ``listener(progress, buffer)`` after every chunk. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get_status(self) -> dict:
        """Return serializable status dict."""
        if self._run is None:
            return {
                "status": SortStatus.IDLE.value,
                "progress": 0.0,
                "processed_lines": 0,
                "total_lines": 0,
                "generation": self._generation,
                "has_image": self._source is not None,
            }
        run = self._run
        return {
            "status": run.status.value,
            "progress": round(run.progress, 4),
            "processed_lines": run.processed_lines,
            "total_lines": run.total_lines,
            "generation": run.generation,
            "has_image": self._source is not None,
            "params": run.config.to_params(),
            "error": run.error,
        }

    def close(self):
        """Drop the run, listeners and buffers."""
        self._supersede()
        self._listeners.clear()
        self._source = None
        self._published = None

    # --- internals ---

    def _supersede(self):
        """Invalidate the in-flight run and let it observe that on one last resume."""
        self._generation += 1
        stale, self._task = self._task, None
        # A listener may restart from inside the running chunk; that run
        # checks the generation itself before yielding.
        if stale is not None and not self._executing:
            next(stale, None)

    def _is_stale(self, run: SortRun) -> bool:
        if run.generation == self._generation:
            return False
        run.status = SortStatus.SUPERSEDED
        logger.info(
            "Sort run %d superseded at %d/%d lines",
            run.generation,
            run.processed_lines,
            run.total_lines,
            extra=_log_context(run),
        )
        return True

    def _execute(
        self, run: SortRun, working: np.ndarray
    ) -> Generator[float, None, None]:
        config = run.config
        while not self._is_stale(run):
            self._executing = True
            try:
                run.processed_lines = sort_lines(
                    working,
                    run.processed_lines,
                    run.processed_lines + config.chunk_lines,
                    config,
                )
                published = _frozen(working)
                self._published = published
                if run.processed_lines >= run.total_lines:
                    run.status = SortStatus.COMPLETE
                # Bound once: a listener may start a new run and swap the buffer.
                progress = run.progress
                for listener in list(self._listeners):
                    listener(progress, published)
            finally:
                self._executing = False

            if run.status == SortStatus.COMPLETE:
                logger.info(
                    "Sort run %d complete", run.generation, extra=_log_context(run)
                )
                return
            if self._is_stale(run):
                return
            yield run.progress
