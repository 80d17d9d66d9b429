"""FAL AI queue adapter for image generation.

Wraps the FAL queue REST API:
- Submit: POST {queue_url}/{model_id} with the generation input -> {request_id}
- Status: GET {queue_url}/{app_id}/requests/{request_id}/status?logs=1
- Result: GET {queue_url}/{app_id}/requests/{request_id}

``app_id`` is the first two segments of the model id (``fal-ai/flux`` for
``fal-ai/flux/schnell``); the queue serves request lookups at the app level.

Rules:
- Async, on the shared httpx.AsyncClient
- No retries (the polling caller decides)
- No DB access
- No logging of request/response bodies; provider error bodies travel on the exception
"""

from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from leelaaverse.errors import ApiErrorCode, InvalidRequestError
from leelaaverse.logging import get_logger

logger = get_logger(__name__)

GenerationPhase = Literal["queued", "processing", "completed", "failed"]

DEFAULT_MODEL = "flux-1-srpo"
DEFAULT_IMAGE_SIZE = "landscape_4_3"
MIN_GUIDANCE = 1.0
MAX_GUIDANCE = 20.0

ASPECT_RATIO_SIZES = {
    "1:1": "square_hd",
    "4:3": "landscape_4_3",
    "3:4": "portrait_4_3",
    "16:9": "landscape_16_9",
    "9:16": "portrait_16_9",
}

PROVIDER_PHASES: dict[str, GenerationPhase] = {
    "IN_QUEUE": "queued",
    "IN_PROGRESS": "processing",
    "COMPLETED": "completed",
    "FAILED": "failed",
    "ERROR": "failed",
}


@dataclass(frozen=True)
class ModelSpec:
    """A selectable image model and its per-model bounds.

    Attributes:
        key: Selector clients send (``selectedModel``)
        endpoint: FAL model id
        display_name: Human-readable name stored on records and provenance
        default_steps / max_steps: Inference step default and cap
        default_guidance: Guidance scale used when the client sends none
        extra_input: Model-specific input fields sent on every submit
    """

    key: str
    endpoint: str
    display_name: str
    default_steps: int
    max_steps: int
    default_guidance: float
    extra_input: dict[str, Any] = field(default_factory=dict)


MODELS: dict[str, ModelSpec] = {
    "flux-schnell": ModelSpec(
        key="flux-schnell",
        endpoint="fal-ai/flux/schnell",
        display_name="FLUX Schnell",
        default_steps=4,
        max_steps=12,
        default_guidance=3.5,
    ),
    "flux-1-srpo": ModelSpec(
        key="flux-1-srpo",
        endpoint="fal-ai/flux-1/srpo",
        display_name="FLUX.1 SRPO",
        default_steps=28,
        max_steps=50,
        default_guidance=4.5,
        extra_input={"acceleration": "regular"},
    ),
}


def resolve_model(selector: str | None) -> ModelSpec:
    """Return the model for a selector; unknown or missing selectors get the default."""
    return MODELS.get(selector or "", MODELS[DEFAULT_MODEL])


def image_size_for(aspect_ratio: str | None) -> str:
    return ASPECT_RATIO_SIZES.get(aspect_ratio or "", DEFAULT_IMAGE_SIZE)


@dataclass(frozen=True)
class GenerationInput:
    """Validated, clamped provider input for one job."""

    model: ModelSpec
    prompt: str
    image_size: str
    num_inference_steps: int
    guidance_scale: float

    def payload(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "image_size": self.image_size,
            "num_inference_steps": self.num_inference_steps,
            "guidance_scale": self.guidance_scale,
            "num_images": 1,
            "enable_safety_checker": True,
            "output_format": "jpeg",
            **self.model.extra_input,
        }


def build_generation_input(
    prompt: str | None,
    model_selector: str | None = None,
    aspect_ratio: str | None = None,
    num_inference_steps: int | None = None,
    guidance_scale: float | None = None,
) -> GenerationInput:
    """Validate and normalize a generation request.

    Unmapped aspect ratios fall back to ``landscape_4_3``; step counts above the
    model's cap are clamped, not rejected; guidance is clamped to [1, 20].

    Raises:
        InvalidRequestError(E_PROMPT_REQUIRED): Prompt is missing or blank.
    """
    cleaned = (prompt or "").strip()
    if not cleaned:
        raise InvalidRequestError(ApiErrorCode.E_PROMPT_REQUIRED, "Prompt is required")

    model = resolve_model(model_selector)

    steps = num_inference_steps or model.default_steps
    if steps > model.max_steps:
        logger.info(
            "generation_steps_clamped", model=model.key, requested=steps, cap=model.max_steps
        )
    steps = max(1, min(steps, model.max_steps))

    guidance = guidance_scale if guidance_scale is not None else model.default_guidance
    guidance = max(MIN_GUIDANCE, min(float(guidance), MAX_GUIDANCE))

    return GenerationInput(
        model=model,
        prompt=cleaned,
        image_size=image_size_for(aspect_ratio),
        num_inference_steps=steps,
        guidance_scale=guidance,
    )


@dataclass(frozen=True)
class GenerationStatus:
    """Provider view of a job.

    Attributes:
        phase: One of queued, processing, completed, failed
        queue_position: Position in the provider queue, when queued
        logs: Provider log lines (messages only)
        error: Provider error text, when failed
    """

    phase: GenerationPhase
    queue_position: int | None = None
    logs: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    """Output of a completed job."""

    asset_url: str
    seed: int | None
    prompt: str | None


class GenerationProviderError(Exception):
    """Transport or provider failure.

    Attributes:
        message: What failed
        status_code: Provider HTTP status, None for transport failures
        body: Provider's raw error body (parsed JSON when possible)
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


def _app_id(endpoint: str) -> str:
    return "/".join(endpoint.split("/")[:2])


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class FalQueueClient:
    """Client for the FAL queue API.

    Args:
        client: Shared httpx.AsyncClient for connection pooling.
        api_key: FAL API key.
        base_url: Queue base URL.
        timeout_s: Per-request timeout.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str = "https://queue.fal.run",
        timeout_s: int = 30,
    ):
        self._client = client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_s, connect=10.0)

    async def submit(self, generation: GenerationInput) -> str:
        """Submit a job and return the provider's request id."""
        data = await self._request(
            "POST", f"{self._base_url}/{generation.model.endpoint}", json=generation.payload()
        )
        request_id = data.get("request_id") if isinstance(data, dict) else None
        if not request_id:
            raise GenerationProviderError("Provider response missing request_id", body=data)
        return request_id

    async def status(self, model: ModelSpec, job_id: str) -> GenerationStatus:
        data = await self._request(
            "GET",
            f"{self._base_url}/{_app_id(model.endpoint)}/requests/{job_id}/status",
            params={"logs": "1"},
        )
        raw_status = str(data.get("status", "")).upper()
        phase = PROVIDER_PHASES.get(raw_status)
        if phase is None:
            raise GenerationProviderError(f"Unknown provider status '{raw_status}'", body=data)

        logs = [
            entry.get("message", "") if isinstance(entry, dict) else str(entry)
            for entry in data.get("logs") or []
        ]
        return GenerationStatus(
            phase=phase,
            queue_position=data.get("queue_position"),
            logs=logs,
            error=data.get("error"),
        )

    async def result(self, model: ModelSpec, job_id: str) -> GenerationResult:
        data = await self._request(
            "GET", f"{self._base_url}/{_app_id(model.endpoint)}/requests/{job_id}"
        )
        images = data.get("images") or []
        asset_url = images[0].get("url") if images else None
        if not asset_url:
            raise GenerationProviderError("Provider result contains no image", body=data)

        seed = data.get("seed")
        return GenerationResult(
            asset_url=asset_url,
            seed=int(seed) if seed is not None else None,
            prompt=data.get("prompt"),
        )

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        if not self._api_key:
            raise GenerationProviderError("Image generation provider is not configured")

        try:
            response = await self._client.request(
                method,
                url,
                headers={"Authorization": f"Key {self._api_key}"},
                timeout=self._timeout,
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "generation_provider_error", url=url, status_code=e.response.status_code
            )
            raise GenerationProviderError(
                f"Provider returned status {e.response.status_code}",
                status_code=e.response.status_code,
                body=_error_body(e.response),
            ) from e
        except httpx.TimeoutException as e:
            logger.warning("generation_provider_timeout", url=url)
            raise GenerationProviderError("Provider request timed out") from e
        except httpx.RequestError as e:
            logger.warning("generation_provider_unreachable", url=url, error=str(e))
            raise GenerationProviderError(f"Provider unreachable: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise GenerationProviderError(
                "Provider returned a non-JSON body", status_code=response.status_code
            ) from e
