"""Browser session handling: classification, snapshots, forwarding handles."""

from .errors import (
    ConfigurationError,
    ErrorClassifier,
    FailureDescriptor,
    HandleClosedError,
    MigrationConstructionError,
    MigrationError,
    NavigationErrorKind,
    ProxyExhaustedError,
    ReadinessTimeoutError,
)
from .forwarding import ForwardingHandle, SessionHandle, capabilities_for, install_forwarding
from .handles import ResilientBrowser, ResilientBrowserType, ResilientContext, ResilientPage
from .proxy import HttpProxyProvider, ProxyProvider, StaticProxyProvider, create_proxy_provider
from .readiness import ChallengeDetectedError
from .session import ActiveSession, SessionBlueprint
from .snapshot import capture_snapshot, restore_snapshot

__all__ = [
    "ActiveSession",
    "ChallengeDetectedError",
    "ConfigurationError",
    "ErrorClassifier",
    "FailureDescriptor",
    "HandleClosedError",
    "ForwardingHandle",
    "HttpProxyProvider",
    "MigrationConstructionError",
    "MigrationError",
    "NavigationErrorKind",
    "ProxyExhaustedError",
    "ProxyProvider",
    "ReadinessTimeoutError",
    "ResilientBrowser",
    "ResilientBrowserType",
    "ResilientContext",
    "ResilientPage",
    "SessionBlueprint",
    "SessionHandle",
    "StaticProxyProvider",
    "capabilities_for",
    "capture_snapshot",
    "create_proxy_provider",
    "install_forwarding",
    "restore_snapshot",
]
