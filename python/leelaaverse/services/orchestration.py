"""Generation workflow: start, poll, publish.

Per generation attempt:

    pending -> processing -> completed | failed -> (posted)

- Start submits 1-4 provider jobs and records each in ``processing``. If a submit
  fails partway, the records of the jobs already submitted are marked ``failed``.
- Poll answers terminal records from the database. For active records it asks the
  provider and persists a terminal phase before answering. A poll that loses the
  race to persist re-reads the stored record, so concurrent polls agree.
- Publish relocates the asset, then creates the post and links the record in one
  transaction. If that transaction fails, the relocated object is deleted.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from leelaaverse.db.models import GenerationRecord, GenerationStatus, PostCategory
from leelaaverse.db.session import transaction
from leelaaverse.errors import ApiError, ApiErrorCode, ConflictError, InvalidRequestError
from leelaaverse.logging import get_logger, set_generation_id
from leelaaverse.schemas.generation import GenerateImageRequest, GenerationHandleOut
from leelaaverse.schemas.posts import CreateFromGenerationRequest, CreatePostRequest, PostOut
from leelaaverse.services import generation_records, posts
from leelaaverse.services.generation import (
    FalQueueClient,
    GenerationProviderError,
    build_generation_input,
    resolve_model,
)
from leelaaverse.services.relocation import MediaRelocator, RelocatedMedia

logger = get_logger(__name__)

MIN_IMAGES = 1
MAX_IMAGES = 4
ESTIMATED_TIME = "15-30 seconds per image"
DEFAULT_FAILURE_MESSAGE = "Generation failed"
BATCH_ABORTED_MESSAGE = "Generation batch aborted: a later image failed to start"


def _provider_error(message: str, exc: GenerationProviderError) -> ApiError:
    return ApiError(ApiErrorCode.E_PROVIDER_ERROR, message, details=exc.body or exc.message)


async def start_generation(
    db: Session,
    client: FalQueueClient,
    viewer_id: UUID,
    request: GenerateImageRequest,
) -> dict[str, Any]:
    """Submit ``numImages`` provider jobs and record each one.

    Returns the response fields: ids of the first job at top level plus every job
    under ``generations``.

    Raises:
        InvalidRequestError(E_PROMPT_REQUIRED): Blank prompt.
        ApiError(E_PROVIDER_ERROR): Provider rejected or was unreachable.
    """
    generation = build_generation_input(
        request.prompt,
        request.selected_model,
        request.aspect_ratio,
        request.num_inference_steps,
        request.guidance_scale,
    )
    count = max(MIN_IMAGES, min(request.num_images or MIN_IMAGES, MAX_IMAGES))

    handles: list[GenerationHandleOut] = []
    for _ in range(count):
        try:
            job_id = await client.submit(generation)
        except GenerationProviderError as e:
            _abort_batch(db, handles)
            raise _provider_error("Failed to start image generation", e) from e

        record = generation_records.create_record(
            db,
            user_id=viewer_id,
            external_job_id=job_id,
            generation=generation,
            aspect_ratio=request.aspect_ratio,
            style=request.style,
        )
        handles.append(GenerationHandleOut(request_id=job_id, ai_generation_id=record.id))

    logger.info("generation_submitted", model=generation.model.key, count=count)

    generations = [h.model_dump(mode="json", by_alias=True) for h in handles]
    return {
        "message": f"{count} image generation(s) started",
        "requestId": handles[0].request_id,
        "aiGenerationId": str(handles[0].ai_generation_id),
        "estimatedTime": ESTIMATED_TIME,
        "generations": generations,
        "count": count,
    }


def _abort_batch(db: Session, handles: list[GenerationHandleOut]) -> None:
    """Fail the records of jobs submitted before a later submit in the batch failed."""
    for handle in handles:
        generation_records.mark_failed(db, handle.request_id, BATCH_ABORTED_MESSAGE)
    if handles:
        logger.warning(
            "generation_batch_aborted",
            aborted_request_ids=[h.request_id for h in handles],
        )


def terminal_payload(record: GenerationRecord) -> dict[str, Any]:
    """Response fields for a record that reached ``completed`` or ``failed``."""
    if record.status == GenerationStatus.completed.value:
        return {
            "success": True,
            "status": GenerationStatus.completed.value,
            "requestId": record.external_job_id,
            "imageUrl": record.result_url,
            "seed": record.seed,
            "prompt": record.prompt,
        }
    return {
        "success": False,
        "status": GenerationStatus.failed.value,
        "requestId": record.external_job_id,
        "message": record.error_message or DEFAULT_FAILURE_MESSAGE,
    }


def _is_terminal(record: GenerationRecord) -> bool:
    return record.status in (GenerationStatus.completed.value, GenerationStatus.failed.value)


async def poll_generation(
    db: Session,
    client: FalQueueClient,
    viewer_id: UUID,
    request_id: str,
) -> dict[str, Any]:
    """Reconcile one generation with the provider and describe its state.

    Raises:
        NotFoundError(E_GENERATION_NOT_FOUND): Unknown job or owned by someone else.
        ApiError(E_PROVIDER_ERROR): Provider status or result call failed.
    """
    set_generation_id(request_id)
    record = generation_records.get_by_external_job_id(db, request_id, owner_id=viewer_id)
    if _is_terminal(record):
        return terminal_payload(record)

    model = resolve_model(record.model)
    try:
        status = await client.status(model, request_id)
        if status.phase == "completed":
            result = await client.result(model, request_id)
    except GenerationProviderError as e:
        raise _provider_error("Failed to get generation result", e) from e

    if status.phase in ("queued", "processing"):
        return {
            "success": True,
            "status": status.phase,
            "requestId": request_id,
            "queuePosition": status.queue_position,
            "logs": status.logs,
        }

    try:
        if status.phase == "completed":
            record = generation_records.mark_completed(
                db, request_id, result.asset_url, result.seed
            )
        else:
            record = generation_records.mark_failed(
                db, request_id, status.error or DEFAULT_FAILURE_MESSAGE
            )
    except ConflictError:
        # Another poll persisted a terminal state first; answer with what it stored.
        logger.info("generation_poll_race_lost")
        record = generation_records.get_by_external_job_id(db, request_id)
        db.refresh(record)

    return terminal_payload(record)


def _publish_with_compensation(
    db: Session, relocator: MediaRelocator, media: RelocatedMedia | None, create
):
    try:
        with transaction(db):
            post = create()
    except Exception:
        if media is not None:
            relocator.discard(media)
        raise
    return post


def publish_generation(
    db: Session,
    relocator: MediaRelocator,
    viewer_id: UUID,
    request: CreateFromGenerationRequest,
) -> dict[str, Any]:
    """Turn a completed generation into a post.

    Raises:
        NotFoundError(E_GENERATION_NOT_FOUND): Unknown job or owned by someone else.
        InvalidRequestError(E_GENERATION_NOT_COMPLETED): Job not completed.
        ConflictError(E_GENERATION_ALREADY_POSTED): Job already published.
        ApiError(E_UPLOAD_FAILED): Relocation failed.
    """
    set_generation_id(request.request_id)
    record = generation_records.get_by_external_job_id(
        db, request.request_id, owner_id=viewer_id
    )
    db.refresh(record)

    if record.status != GenerationStatus.completed.value or not record.result_url:
        raise InvalidRequestError(
            ApiErrorCode.E_GENERATION_NOT_COMPLETED, "Generation is not completed yet"
        )
    if record.post_id is not None:
        raise ConflictError(
            ApiErrorCode.E_GENERATION_ALREADY_POSTED,
            "A post has already been created from this generation",
        )

    media = relocator.relocate(record.result_url, viewer_id)

    def create():
        post = posts.create_from_generation(
            db,
            record,
            media,
            caption=request.caption,
            title=request.title,
            tags=request.tags,
            visibility=request.visibility,
        )
        generation_records.link_to_post(db, record.id, post.id)
        return post

    post = _publish_with_compensation(db, relocator, media, create)
    db.refresh(post)
    return {"post": PostOut.model_validate(post).model_dump(mode="json", by_alias=True)}


def create_direct_post(
    db: Session,
    relocator: MediaRelocator,
    viewer_id: UUID,
    request: CreatePostRequest,
) -> dict[str, Any]:
    """Create a post from a caption and/or a remote media URL.

    The media URL, when present on a non-text post, is relocated into owned storage
    first so posts never reference third-party hosts.
    """
    media = None
    if request.media_url and request.category != PostCategory.text.value:
        media = relocator.relocate(request.media_url, viewer_id)

    def create():
        return posts.create_post(
            db,
            viewer_id,
            category=request.category,
            caption=request.caption,
            title=request.title,
            media=media,
            tags=request.tags,
            visibility=request.visibility,
        )

    post = _publish_with_compensation(db, relocator, media, create)
    db.refresh(post)
    return {"post": PostOut.model_validate(post).model_dump(mode="json", by_alias=True)}
