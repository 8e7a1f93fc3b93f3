"""Error taxonomy and retry classification for navigation failures."""

import errno
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class NavigationErrorKind(str, Enum):
    """Classifies navigation failures for retry decisions."""

    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"


class MigrationError(Exception):
    """Base class for errors raised by the migration layer."""


class ConfigurationError(MigrationError):
    """Raised when the migration layer cannot be set up."""


class ProxyExhaustedError(MigrationError):
    """Raised by a proxy provider that cannot hand out a credential."""


class MigrationConstructionError(MigrationError):
    """Raised when building a replacement session fails."""

    def __init__(self, message: str, cause: BaseException):
        self.cause = cause
        super().__init__(f"{message}: {cause}")


class ReadinessTimeoutError(MigrationError):
    """Raised when a migrated page never reaches the readiness condition."""


class HandleClosedError(MigrationError):
    """Raised when a page handle is closed while its migration is under way."""


@dataclass(frozen=True)
class FailureDescriptor:
    """The three fields retry patterns are matched against."""

    message: str
    code: str | None = None
    name: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "FailureDescriptor":
        """Describe an exception.

        ``code`` comes from a ``code`` attribute, or the errno symbol for
        ``OSError`` (e.g. ``ECONNRESET``). ``name`` comes from a ``name``
        attribute (Playwright errors carry one), else the class name.
        """
        code = getattr(exc, "code", None)
        if code is None and isinstance(exc, OSError) and exc.errno is not None:
            code = errno.errorcode.get(exc.errno)

        name = getattr(exc, "name", None)
        if not isinstance(name, str) or not name:
            name = type(exc).__name__

        message = getattr(exc, "message", None)
        if not isinstance(message, str):
            message = str(exc)

        return cls(
            message=message,
            code=str(code) if code is not None else None,
            name=name,
        )

    def fields(self) -> tuple[str, ...]:
        return tuple(f for f in (self.message, self.code, self.name) if f)


_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}
_DELIMITED = re.compile(r"^/(?P<body>.+)/(?P<flags>[a-z]*)$", re.DOTALL)


@dataclass(frozen=True)
class RetryPattern:
    """A literal substring or a compiled ``/regex/flags`` pattern."""

    raw: str
    regex: re.Pattern[str] | None = None

    @classmethod
    def parse(cls, raw: str) -> "RetryPattern":
        """Parse a pattern; a malformed regex falls back to substring matching."""
        match = _DELIMITED.match(raw)
        if not match:
            return cls(raw=raw)

        flags = 0
        for flag in match.group("flags"):
            if flag not in _REGEX_FLAGS:
                return cls(raw=raw)
            flags |= _REGEX_FLAGS[flag]

        try:
            return cls(raw=raw, regex=re.compile(match.group("body"), flags))
        except re.error:
            return cls(raw=raw)

    def matches(self, text: str) -> bool:
        if self.regex is not None:
            return self.regex.search(text) is not None
        return self.raw in text


class ErrorClassifier:
    """Decides whether a navigation failure is worth a migration."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = [RetryPattern.parse(p) for p in patterns if p]

    def classify(self, failure: BaseException | FailureDescriptor) -> NavigationErrorKind:
        """Classify an exception or failure descriptor.

        Args:
            failure: The exception raised by navigation, or its descriptor.

        Returns:
            RETRYABLE if any pattern matches message, code or name.
        """
        if isinstance(failure, BaseException):
            failure = FailureDescriptor.from_exception(failure)

        for text in failure.fields():
            if any(pattern.matches(text) for pattern in self.patterns):
                return NavigationErrorKind.RETRYABLE
        return NavigationErrorKind.NON_RETRYABLE

    def is_retryable(self, failure: BaseException | FailureDescriptor) -> bool:
        return self.classify(failure) is NavigationErrorKind.RETRYABLE
