"""Python client helpers for the Leelaaverse API."""

from leelaaverse.client.poller import GenerationPoller, PollOutcome, UIState

__all__ = ["GenerationPoller", "PollOutcome", "UIState"]
