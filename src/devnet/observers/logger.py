# src/devnet/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent, StepFailed, StepWarned


class LoggerObserver:
    """Mirrors every event into the run log file."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        payload = {k: v for k, v in event.dict().items() if k not in ("ts", "run_id", "host", "event")}
        name = type(event).__name__
        if isinstance(event, StepFailed):
            self.logger.error("%s %s", name, payload)
        elif isinstance(event, StepWarned):
            self.logger.warning("%s %s", name, payload)
        else:
            self.logger.debug("%s %s", name, payload)
