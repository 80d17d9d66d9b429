"""Pydantic request/response schemas.

Wire fields are camelCase; Python attributes stay snake_case.
"""

from leelaaverse.schemas.generation import (
    GenerateImageRequest,
    GenerationHandleOut,
    GenerationOut,
)
from leelaaverse.schemas.posts import (
    CreateFromGenerationRequest,
    CreatePostRequest,
    PaginationOut,
    PostOut,
)

__all__ = [
    "GenerateImageRequest",
    "GenerationHandleOut",
    "GenerationOut",
    "CreateFromGenerationRequest",
    "CreatePostRequest",
    "PaginationOut",
    "PostOut",
]
