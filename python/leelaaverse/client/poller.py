"""Client-side generation poller.

Drives the post-creation flow the way the web client does: after a generation is
started, the status endpoint is called on a fixed 2 second timer, at most 60 times
(about two minutes).

UI states:
    input -> generating -> result      (completed)
    input -> generating -> input       (failed, timed out, transport error, cancelled)

There is no retry: one transport error or ``success: false`` envelope ends the loop
as a failure.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

import httpx

from leelaaverse.logging import get_logger

logger = get_logger(__name__)

POLL_INTERVAL_S = 2.0
MAX_ATTEMPTS = 60
TIMEOUT_MESSAGE = "Generation timed out. Please try again."


class UIState(str, Enum):
    INPUT = "input"
    GENERATING = "generating"
    RESULT = "result"


@dataclass(frozen=True)
class PollOutcome:
    """How a polling loop ended."""

    status: Literal["completed", "failed", "cancelled"]
    request_id: str
    attempts: int
    image_url: str | None = None
    seed: int | None = None
    prompt: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class GenerationPoller:
    """Polls ``GET /api/posts/generation/{requestId}`` until a terminal outcome.

    Args:
        client: HTTP client pointed at the API (``base_url`` set on the client or
            passed here).
        base_url: API origin, prefixed to the status path.
        token: Bearer token sent with every poll.
        interval_s: Fixed delay between polls.
        max_attempts: Poll cap before giving up.
        sleep: Awaitable delay, replaceable in tests.
        on_state_change: Called with each new UIState.
        on_progress: Called with each non-terminal status payload.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "",
        token: str | None = None,
        *,
        interval_s: float = POLL_INTERVAL_S,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_state_change: Callable[[UIState], None] | None = None,
        on_progress: Callable[[dict[str, Any]], None] | None = None,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._token = token
        self.interval_s = interval_s
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._on_state_change = on_state_change
        self._on_progress = on_progress
        self._cancelled = False
        self.state = UIState.INPUT

    def cancel(self) -> None:
        """Stop an in-flight loop before its next poll."""
        self._cancelled = True

    def _set_state(self, state: UIState) -> None:
        self.state = state
        if self._on_state_change:
            self._on_state_change(state)

    def _fail(self, request_id: str, attempts: int, message: str, raw=None) -> PollOutcome:
        logger.info("generation_poll_failed", generation_id=request_id, attempts=attempts)
        self._set_state(UIState.INPUT)
        return PollOutcome(
            status="failed", request_id=request_id, attempts=attempts, error=message, raw=raw or {}
        )

    async def _fetch(self, request_id: str) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        response = await self._client.get(
            f"{self._base_url}/api/posts/generation/{request_id}", headers=headers
        )
        return response.json()

    async def poll(self, request_id: str) -> PollOutcome:
        """Run the loop for one generation and return how it ended."""
        self._cancelled = False
        self._set_state(UIState.GENERATING)

        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.interval_s)
            if self._cancelled:
                self._set_state(UIState.INPUT)
                return PollOutcome(status="cancelled", request_id=request_id, attempts=attempt - 1)

            try:
                data = await self._fetch(request_id)
            except (httpx.HTTPError, ValueError) as e:
                return self._fail(request_id, attempt, f"Failed to check generation status: {e}")

            if not data.get("success"):
                message = data.get("message") or "Generation failed"
                return self._fail(request_id, attempt, message, data)

            if data.get("status") == "completed":
                self._set_state(UIState.RESULT)
                return PollOutcome(
                    status="completed",
                    request_id=request_id,
                    attempts=attempt,
                    image_url=data.get("imageUrl"),
                    seed=data.get("seed"),
                    prompt=data.get("prompt"),
                    raw=data,
                )

            if self._on_progress:
                self._on_progress(data)

        return self._fail(request_id, self.max_attempts, TIMEOUT_MESSAGE)
