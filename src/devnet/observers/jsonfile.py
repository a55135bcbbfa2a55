# src/devnet/observers/jsonfile.py
from __future__ import annotations

import json
from pathlib import Path

from devnet.utils.serialize import to_jsonable
from .events import BaseEvent


class JsonFileObserver:
    """Appends one JSON object per event (JSON Lines)."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def notify(self, event: BaseEvent) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(to_jsonable(event.dict()), sort_keys=True) + "\n")
