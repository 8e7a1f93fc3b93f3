"""Type definitions for resilient navigation."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]


class NavigationRequest(BaseModel):
    """A single ``goto`` call as issued by the caller."""

    url: str = Field(description="Target URL")
    wait_until: WaitUntil | None = Field(default=None, description="Navigation wait condition")
    timeout: float | None = Field(default=None, ge=0, description="Navigation timeout in ms")
    referer: str | None = Field(default=None, description="Referer header value")

    def goto_kwargs(self) -> dict[str, Any]:
        """Return only the navigation options the caller supplied."""
        return self.model_dump(exclude={"url"}, exclude_none=True)


class ProxyCredential(BaseModel):
    """Network egress credential handed out by a proxy provider."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1, description="Proxy hostname or IP")
    port: int = Field(ge=1, le=65535, description="Proxy port")
    username: str | None = Field(default=None, description="Proxy auth username")
    password: str | None = Field(default=None, description="Proxy auth password")
    scheme: str = Field(default="http", description="Proxy scheme (http, https, socks5)")

    @property
    def server(self) -> str:
        """Connection string without credentials."""
        return f"{self.scheme}://{self.host}:{self.port}"

    def redacted(self) -> str:
        """Connection string safe for logs."""
        if self.username is None and self.password is None:
            return self.server
        return f"{self.scheme}://***:***@{self.host}:{self.port}"

    def to_playwright(self) -> dict[str, str]:
        """Render as Playwright's ``proxy`` launch option."""
        proxy = {"server": self.server}
        if self.username is not None:
            proxy["username"] = self.username
        if self.password is not None:
            proxy["password"] = self.password
        return proxy


class SessionSnapshot(BaseModel):
    """State captured from a session so a replacement can resume it.

    Each field is captured independently; any subset may be missing.
    """

    storage_state: dict[str, Any] | None = Field(
        default=None, description="Cookies and origin storage from the context"
    )
    viewport: dict[str, int] | None = Field(default=None, description="Viewport width/height")
    user_agent: str | None = Field(default=None, description="navigator.userAgent of the page")

    @property
    def is_empty(self) -> bool:
        return self.storage_state is None and self.viewport is None and self.user_agent is None


class MigrationOutcome(str, Enum):
    """Result of one migration attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"


class MigrationRecord(BaseModel):
    """Structured record emitted for every migration attempt."""

    url: str = Field(description="Navigation target")
    attempt: int = Field(ge=1, description="Attempt index (1 is the first migration)")
    max_attempts: int = Field(ge=0, description="Configured migration budget")
    proxy: str | None = Field(default=None, description="Redacted proxy connection string")
    outcome: MigrationOutcome = Field(description="What happened")
    error: str | None = Field(default=None, description="Error type and message on failure")
    ts: datetime = Field(default_factory=datetime.now, description="When the attempt finished")
