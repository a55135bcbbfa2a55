# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/logging/log.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# chatty libraries that only matter when debugging a connection problem
_NOISY = ("paramiko", "urllib3")


class RunLog(NamedTuple):
    logger: logging.Logger
    run_id: str
    log_path: Path      # human readable trace of every command
    events_path: Path   # JSON lines written by JsonFileObserver


def default_log_dir() -> Path:
    return Path.home() / ".devnet" / "logs"


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "devnet",
    verbose: bool = False,
) -> RunLog:
    """
    One log file per provisioning run, named after the run id so the JSON
    event stream of the same run sits next to it.
    """
    run_id = str(uuid.uuid4())
    base_dir = Path(base_dir) if base_dir is not None else default_log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{stamp}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for old in list(logger.handlers):
        old.close()
        logger.removeHandler(old)
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    trace = logging.FileHandler(log_path, encoding="utf-8")
    trace.setLevel(logging.DEBUG)
    trace.setFormatter(formatter)
    logger.addHandler(trace)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(formatter)
    logger.addHandler(console)

    for lib in _NOISY:
        logging.getLogger(lib).setLevel(logging.DEBUG if verbose else logging.WARNING)

    logger.info("devnet run %s, trace in %s", run_id, log_path)
    return RunLog(logger, run_id, log_path, base_dir / f"{run_id}.jsonl")
