"""Error taxonomy for port scanning.

Classification of command failures happens once, in the scanner; everything
below the scanner either raises the raw OS/subprocess error or recovers locally.
"""
from __future__ import annotations
from typing import Optional


class PortScanError(Exception):
    kind = "unknown"


class ValidationError(PortScanError, ValueError):
    kind = "validation"


class CommandNotFoundError(PortScanError):
    kind = "command_not_found"


class PermissionDeniedError(PortScanError):
    kind = "permission_denied"


class CommandTerminatedError(PortScanError):
    kind = "command_terminated"

    def __init__(self, message: str, signal: Optional[int] = None):
        super().__init__(message)
        self.signal = signal


class CommandFailedError(PortScanError):
    kind = "command_failed"

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class UnknownScanError(PortScanError):
    kind = "unknown"


class UnsupportedPlatformError(RuntimeError):
    pass
