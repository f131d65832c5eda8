"""
Per-sink filter directives.

A directive list has a default minimum severity plus overrides for named
log sources. Sources are logger names; an override for "grpc" also covers
"grpc._channel" and any other dotted child.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple

from shared.errors import InvalidDirectiveError

TRACE = 5
OFF = logging.CRITICAL + 100

LEVELS: Dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "off": OFF,
}

# Transport and HTTP client internals; silenced on every sink
TRANSPORT_SOURCES: Tuple[str, ...] = (
    "grpc",
    "h2",
    "h11",
    "hpack",
    "httpcore",
    "httpx",
    "urllib3",
)


def parse_level(value) -> int:
    if isinstance(value, int):
        return value
    try:
        return LEVELS[str(value).strip().lower()]
    except KeyError:
        raise InvalidDirectiveError(f"Unknown severity '{value}'") from None


@dataclass(frozen=True)
class Directive:
    target: str
    level: int

    def matches(self, source: str) -> bool:
        return source == self.target or source.startswith(self.target + ".")


@dataclass(frozen=True)
class DirectiveList:
    default: int = logging.INFO
    overrides: Tuple[Directive, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, text: str) -> "DirectiveList":
        """Parse ``"info,grpc=off,opentelemetry=debug"``.

        A bare level sets the default; ``target=level`` adds an override.
        Later entries for the same target replace earlier ones.
        """
        directives = cls()
        for raw in text.split(","):
            part = raw.strip()
            if not part:
                continue
            if "=" in part:
                target, _, level = part.partition("=")
                target = target.strip()
                if not target or not level.strip():
                    raise InvalidDirectiveError(f"Malformed directive '{part}'")
                directives = directives.with_directive(target, level)
            else:
                directives = cls(parse_level(part), directives.overrides)
        return directives

    def with_directive(self, target: str, level) -> "DirectiveList":
        kept = tuple(d for d in self.overrides if d.target != target)
        return DirectiveList(self.default, kept + (Directive(target, parse_level(level)),))

    def threshold_for(self, source: str) -> int:
        # Longest target first: the most specific match governs
        for directive in sorted(self.overrides, key=lambda d: len(d.target), reverse=True):
            if directive.matches(source):
                return directive.level
        return self.default

    def enabled(self, source: str, levelno: int) -> bool:
        return levelno >= self.threshold_for(source)

    @property
    def min_threshold(self) -> int:
        return min([self.default] + [d.level for d in self.overrides])

    def __str__(self) -> str:
        names = {v: k for k, v in LEVELS.items() if k != "warning"}
        parts = [names.get(self.default, str(self.default))]
        parts += [f"{d.target}={names.get(d.level, d.level)}" for d in self.overrides]
        return ",".join(parts)


class DirectiveFilter(logging.Filter):
    """Handler-level filter applying a DirectiveList to log records."""

    def __init__(self, directives: DirectiveList):
        super().__init__()
        self.directives = directives

    def filter(self, record: logging.LogRecord) -> bool:
        return self.directives.enabled(record.name, record.levelno)


def _silence(directives: DirectiveList, sources: Iterable[str]) -> DirectiveList:
    for source in sources:
        directives = directives.with_directive(source, OFF)
    return directives


def otel_log_directives() -> DirectiveList:
    """Filter for the bridged OpenTelemetry log sink."""
    directives = _silence(DirectiveList(logging.INFO), TRANSPORT_SOURCES)
    # The exporter's own chatter would feed back into the exporter
    return directives.with_directive("opentelemetry", OFF)


def console_directives() -> DirectiveList:
    """Filter for the human-readable console sink."""
    directives = _silence(DirectiveList(logging.INFO), TRANSPORT_SOURCES)
    return directives.with_directive("opentelemetry", logging.DEBUG)
