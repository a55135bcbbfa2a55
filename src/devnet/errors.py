# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/errors.py
from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class for provisioning failures."""


class UnsupportedPlatform(ProvisionError):
    """Raised when the host CPU architecture has no storage-node build."""


class PermissionDenied(ProvisionError):
    """Raised when the target host session is not running as root."""


class CommandError(ProvisionError):
    """
    A command exited non-zero.

    The tool's own output is kept verbatim so the operator can diagnose the
    failure without knowing anything about this program.
    """

    def __init__(self, command: str, returncode: int, stdout: str = "", stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        output = (stderr or stdout).strip()
        msg = f"command failed (rc={returncode}): {command}"
        if output:
            msg += f"\n{output}"
        super().__init__(msg)


class PostConditionError(ProvisionError):
    def __init__(self, step: str):
        self.step = step
        super().__init__(f"post-condition of step '{step}' does not hold after its action ran")


class ProxyConfigError(ProvisionError):
    """Synthesized proxy configuration was rejected."""
