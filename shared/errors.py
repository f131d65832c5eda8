"""
Error taxonomy for the OTA server.

Two kinds of failure exist at startup:

- FATAL: the process is misconfigured (exporter, subscriber, filters).
  It must stop before accepting any traffic.
- OPERATIONAL: the environment is not ready (port taken, no privilege).
  It is logged and turned into a non-zero exit code, never a traceback.
"""
from enum import Enum


class ErrorKind(str, Enum):
    FATAL = "fatal"
    OPERATIONAL = "operational"


class OtaServerError(Exception):
    kind: ErrorKind = ErrorKind.FATAL


class FatalStartupError(OtaServerError):
    kind = ErrorKind.FATAL


class ExporterConfigError(FatalStartupError):
    """Malformed exporter endpoint, kind or compression setting."""


class SubscriberInstallError(FatalStartupError):
    """The global log subscriber was already installed or could not be."""


class InvalidDirectiveError(FatalStartupError):
    """A filter directive string could not be parsed."""


class OperationalError(OtaServerError):
    kind = ErrorKind.OPERATIONAL


class ListenerBindError(OperationalError):
    def __init__(self, port, reason: str):
        super().__init__(f"Cannot listen on port {port}: {reason}")
        self.port = port
        self.reason = reason
