"""Core orchestration, configuration and type definitions."""

from .types import (
    MigrationOutcome,
    MigrationRecord,
    NavigationRequest,
    ProxyCredential,
    SessionSnapshot,
)

__all__ = [
    "MigrationOutcome",
    "MigrationRecord",
    "NavigationRequest",
    "ProxyCredential",
    "SessionSnapshot",
]
