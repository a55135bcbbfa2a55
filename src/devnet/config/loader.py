# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from .models import ProvisionConfig

log = logging.getLogger("devnet")

SECRETS_ENV = "DEVNET_SECRETS_FILE"


def _merge_into(base: dict, layer: dict) -> dict:
    """Nested dicts merge key by key; None and "" in *layer* leave *base* alone."""
    for key, value in layer.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_into(current, value)
        elif value not in (None, ""):
            base[key] = value
    return base


def _secrets_path(config_path: Path) -> Path | None:
    """``$DEVNET_SECRETS_FILE`` when set, else a ``secrets.yaml`` beside the config."""
    explicit = os.environ.get(SECRETS_ENV)
    if explicit:
        p = Path(explicit)
        if not p.is_file():
            log.warning("%s=%s does not exist, ignoring it", SECRETS_ENV, explicit)
            return None
        return p

    p = config_path.parent / "secrets.yaml"
    if p.is_file() and p.resolve() != config_path.resolve():
        return p
    return None


def _read_mapping(path: Path) -> dict:
    data = yaml.safe_load(os.path.expandvars(path.read_text())) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def load_config(path: str | Path, overrides: dict | None = None) -> ProvisionConfig:
    """
    Read the provisioning YAML and validate it.

    The SSH password usually lives in a secrets file with the same shape as
    the config (``target: {password: ...}``). ``${VAR}`` references are
    expanded in both files. CLI *overrides* win over both.
    """
    path = Path(path)
    data = _read_mapping(path)

    secrets = _secrets_path(path)
    if secrets is not None:
        log.debug("Merging secrets from %s", secrets)
        _merge_into(data, _read_mapping(secrets))

    if overrides:
        _merge_into(data, overrides)

    return ProvisionConfig.model_validate(data)
