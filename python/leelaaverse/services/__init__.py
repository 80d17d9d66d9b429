"""Business logic services.

Services are called by route handlers and orchestrate provider calls, storage and
database operations. Routes never touch the database directly.
"""

from leelaaverse.services.bootstrap import ensure_user
from leelaaverse.services.generation import FalQueueClient, build_generation_input
from leelaaverse.services.relocation import MediaRelocator

__all__ = [
    "ensure_user",
    "FalQueueClient",
    "build_generation_input",
    "MediaRelocator",
]
