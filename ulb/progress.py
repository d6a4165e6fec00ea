"""Stage progress reporting.

Two output modes:
- Human: one line per event, "Stage: <name>, Progress: <fraction>", on stderr
- Structured: one JSON object per line on stdout,
  {"stage": <name>, "progress": <fraction>}, for front ends that parse
  the stream line by line

Every stage emits 0.0 on entry and 1.0 on successful exit.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

from rich.console import Console

from ulb.types import ProgressEvent, Stage

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Emit stage start/end events as text or JSON lines."""

    def __init__(self, json_output: bool = False, stream: TextIO | None = None) -> None:
        self.json_output = json_output
        if stream is None:
            stream = sys.stdout if json_output else sys.stderr
        self.stream = stream
        self._console = Console(file=stream, highlight=False, markup=False)

    def emit(
        self, stage: Stage | str, progress: float, message: str | None = None
    ) -> ProgressEvent:
        """Emit one progress event.

        Args:
            stage: Stage (or free-form stage name).
            progress: Fraction complete, within [0.0, 1.0].
            message: Optional detail.

        Returns:
            The emitted event.
        """
        if not 0.0 <= progress <= 1.0:
            raise ValueError(f"progress must be within [0.0, 1.0], got {progress}")
        name = stage.value if isinstance(stage, Stage) else stage
        event = ProgressEvent(stage=name, progress=float(progress), message=message)

        if self.json_output:
            self.stream.write(json.dumps(event.to_dict()) + "\n")
            self.stream.flush()
        else:
            line = f"Stage: {event.stage}, Progress: {event.progress}"
            if message:
                line += f" ({message})"
            self._console.print(line, soft_wrap=True)
        logger.debug("Progress event: %s", event)
        return event

    @contextmanager
    def stage(self, stage: Stage | str) -> Iterator[None]:
        """Bracket a stage with its 0.0 and 1.0 events.

        The end event is only emitted when the block completes normally.
        """
        self.emit(stage, 0.0)
        yield
        self.emit(stage, 1.0)


__all__ = ["ProgressReporter"]
