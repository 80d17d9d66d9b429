"""Generation-related Pydantic schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


# =============================================================================
# Request Schemas
# =============================================================================


class GenerateImageRequest(CamelModel):
    """Request body for starting image generation.

    Out-of-range values are normalized server side (steps and guidance clamped per
    model, ``numImages`` clamped to 1-4), so only types are validated here.
    """

    prompt: str | None = None
    selected_model: str | None = None
    aspect_ratio: str | None = None
    num_inference_steps: int | None = None
    guidance_scale: float | None = None
    style: str | None = Field(default=None, max_length=100)
    num_images: int | None = None


# =============================================================================
# Response Schemas
# =============================================================================


class GenerationHandleOut(CamelModel):
    """One submitted job: provider request id plus internal record id."""

    request_id: str
    ai_generation_id: UUID


class GenerationOut(CamelModel):
    """A stored generation record."""

    model_config = CamelModel.model_config | {"from_attributes": True}

    id: UUID
    request_id: str = Field(validation_alias="external_job_id", serialization_alias="requestId")
    model: str
    model_name: str
    prompt: str
    parameters: dict[str, Any]
    status: str
    image_url: str | None = Field(
        default=None, validation_alias="result_url", serialization_alias="imageUrl"
    )
    seed: int | None = None
    post_id: UUID | None = None
    created_at: datetime
    completed_at: datetime | None = None
