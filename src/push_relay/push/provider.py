"""Push provider — the delivery capability ``send(token, message) -> ticket``.

``ExpoPushProvider`` talks to the Expo push API:
- POST /--/api/v2/push/send — send a batch of messages, one ticket each
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from push_relay.errors.relay_errors import PushError

if TYPE_CHECKING:
    from push_relay.config.settings import PushConfig

_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[.+\]$")
_UUID_TOKEN_RE = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE
)


def is_expo_push_token(token: object) -> bool:
    """Return True if *token* looks like an Expo push token."""
    if not isinstance(token, str):
        return False
    return bool(_EXPO_TOKEN_RE.match(token) or _UUID_TOKEN_RE.match(token))


# ---------------------------------------------------------------------------
# Messages / tickets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PushMessage:
    """A single push message addressed by the caller-supplied token."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    sound: str | None = "default"

    def to_expo(self, push_token: str) -> dict[str, Any]:
        """Serialize to an Expo message object."""
        msg: dict[str, Any] = {
            "to": push_token,
            "title": self.title,
            "body": self.body,
            "data": self.data,
        }
        if self.sound:
            msg["sound"] = self.sound
        return msg


@dataclass
class PushTicket:
    """Provider receipt for one message.

    Attributes:
        status: ``"ok"`` or ``"error"``.
        id: Ticket id for later receipt lookup (ok tickets only).
        message: Error description (error tickets only).
        details: Provider error details, e.g. ``{"error": "DeviceNotRegistered"}``.
    """

    status: str = ""
    id: str = ""
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PushTicket:
        return cls(
            status=data.get("status", ""),
            id=data.get("id", ""),
            message=data.get("message", ""),
            details=data.get("details") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Provider interface
# ---------------------------------------------------------------------------


class PushProvider(ABC):
    """Abstract delivery capability."""

    @abstractmethod
    async def send(self, push_token: str, message: PushMessage) -> PushTicket:
        """Deliver *message* to *push_token* and return the provider ticket.

        Raises:
            PushError: On transport or provider-level failure.
        """

    async def connect(self) -> None:  # noqa: B027
        """Acquire resources (optional)."""

    async def close(self) -> None:  # noqa: B027
        """Release resources (optional)."""


class ExpoPushProvider(PushProvider):
    """Async HTTP client for the Expo push API.

    Usage::

        expo = ExpoPushProvider(config)
        await expo.connect()
        try:
            ticket = await expo.send("ExponentPushToken[xxx]", PushMessage("Hi", "there"))
        finally:
            await expo.close()
    """

    def __init__(self, config: PushConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is not None:
            return
        headers: dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._config.access_token:
            headers["Authorization"] = f"Bearer {self._config.access_token}"
        self._client = httpx.AsyncClient(headers=headers, timeout=self._config.timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    async def send(self, push_token: str, message: PushMessage) -> PushTicket:
        """POST one message to Expo and return its ticket.

        Raises:
            PushError: On HTTP errors, non-2xx responses or a missing ticket.
        """
        client = self._ensure_connected()

        try:
            response = await client.post(self._config.url, json=[message.to_expo(push_token)])
        except httpx.HTTPError as exc:
            raise PushError(f"Expo push request failed: {exc}") from exc

        if response.status_code >= 400:
            raise PushError(
                f"Expo push failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise PushError("Expo push returned a non-JSON body") from exc

        errors = body.get("errors")
        if errors:
            detail = errors[0].get("message", "unknown error")
            raise PushError(f"Expo push rejected the request: {detail}")

        tickets = body.get("data") or []
        if isinstance(tickets, dict):
            tickets = [tickets]
        if not tickets:
            msg = "No tickets returned"
            raise PushError(msg)
        return PushTicket.from_dict(tickets[0])

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Expo push provider not connected. Call connect() first."
            raise PushError(msg, status_code=500)
        return self._client
