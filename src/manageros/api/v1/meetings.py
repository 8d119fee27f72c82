"""REST endpoints for meetings, meeting instances, and participants.

Every endpoint resolves the actor from the bearer token (get_actor) and
delegates to MeetingService from app.state. Domain errors are translated to
HTTP status codes:

- OrganizationRequiredError -> 403
- NotFoundError -> 404 (missing, other organization, or not visible)
- ParticipantConflictError -> 409
- IcsParseError -> 400
- pydantic.ValidationError -> 422
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from src.manageros.api.deps import get_actor
from src.manageros.core.context import ActorContext
from src.manageros.core.errors import (
    IcsParseError,
    ManagerOSError,
    NotFoundError,
    OrganizationRequiredError,
    ParticipantConflictError,
)
from src.manageros.meetings.schemas import (
    AddParticipantRequest,
    IcsImportRequest,
    ImportedMeeting,
    ImportedMeetingInstance,
    MeetingCreate,
    MeetingDetail,
    MeetingInstance,
    MeetingInstanceCreate,
    MeetingInstanceDetail,
    MeetingInstanceParticipant,
    MeetingInstanceUpdate,
    MeetingParticipant,
    MeetingUpdate,
    ParticipantStatusUpdate,
)
from src.manageros.meetings.service import MeetingService

router = APIRouter(prefix="/api/v1/meetings", tags=["meetings"])
instances_router = APIRouter(prefix="/api/v1/meeting-instances", tags=["meeting-instances"])


# ── Dependency Injection Helpers ─────────────────────────────────────────────


def _get_meeting_service(request: Request) -> MeetingService:
    """Retrieve MeetingService from app.state, 503 if not available."""
    service = getattr(request.app.state, "meeting_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting service not initialized",
        )
    return service


# ── Error Translation ────────────────────────────────────────────────────────


_ERROR_STATUS: dict[type[ManagerOSError], int] = {
    OrganizationRequiredError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ParticipantConflictError: status.HTTP_409_CONFLICT,
    IcsParseError: status.HTTP_400_BAD_REQUEST,
}


def _http_error(exc: ManagerOSError | ValidationError) -> HTTPException:
    """Map a domain or validation error to an HTTPException."""
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        )
    code = next(
        (code for error_type, code in _ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    return HTTPException(status_code=code, detail=str(exc))


# ── Meetings ─────────────────────────────────────────────────────────────────


@router.get("", response_model=list[MeetingDetail])
async def list_meetings(
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> list[MeetingDetail]:
    """List meetings of the actor's organization that the actor can see."""
    service = _get_meeting_service(request)
    try:
        return await service.get_meetings(actor)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.post("", response_model=MeetingDetail, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    body: MeetingCreate,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingDetail:
    """Create a meeting with its initial participants."""
    service = _get_meeting_service(request)
    try:
        return await service.create_meeting(actor, body)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.post("/import-ics", response_model=ImportedMeeting)
async def import_meeting_from_ics(
    body: IcsImportRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> ImportedMeeting:
    """Parse an ICS file into a meeting form prefill."""
    service = _get_meeting_service(request)
    try:
        return await service.import_meeting_from_ics(actor, body.file_content)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.get("/{meeting_id}", response_model=MeetingDetail)
async def get_meeting(
    meeting_id: str,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingDetail:
    """Get a meeting with participants and instances."""
    service = _get_meeting_service(request)
    try:
        return await service.get_meeting(actor, meeting_id)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.patch("/{meeting_id}", response_model=MeetingDetail)
async def update_meeting(
    meeting_id: str,
    body: MeetingUpdate,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingDetail:
    """Partially update a meeting."""
    service = _get_meeting_service(request)
    try:
        return await service.update_meeting(actor, meeting_id, body)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.delete("/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting(
    meeting_id: str,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> None:
    """Delete a meeting, its instances, and all participant rows."""
    service = _get_meeting_service(request)
    try:
        await service.delete_meeting(actor, meeting_id)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.get("/{meeting_id}/instances", response_model=list[MeetingInstance])
async def list_meeting_instances(
    meeting_id: str,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> list[MeetingInstance]:
    """List the instances of a visible meeting ordered by scheduled_at."""
    service = _get_meeting_service(request)
    try:
        return await service.get_meeting_instances(actor, meeting_id)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


# ── Meeting Participants ─────────────────────────────────────────────────────


@router.post(
    "/{meeting_id}/participants",
    response_model=MeetingParticipant,
    status_code=status.HTTP_201_CREATED,
)
async def add_meeting_participant(
    meeting_id: str,
    body: AddParticipantRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingParticipant:
    """Add a person to a meeting."""
    service = _get_meeting_service(request)
    try:
        return await service.add_meeting_participant(
            actor, meeting_id, body.person_id, body.status
        )
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.patch("/{meeting_id}/participants/{person_id}", response_model=MeetingParticipant)
async def update_meeting_participant_status(
    meeting_id: str,
    person_id: str,
    body: ParticipantStatusUpdate,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingParticipant:
    """Change a meeting participant's status."""
    service = _get_meeting_service(request)
    try:
        return await service.update_meeting_participant_status(
            actor, meeting_id, person_id, body.status
        )
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@router.delete(
    "/{meeting_id}/participants/{person_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_meeting_participant(
    meeting_id: str,
    person_id: str,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> None:
    """Remove a person from a meeting."""
    service = _get_meeting_service(request)
    try:
        await service.remove_meeting_participant(actor, meeting_id, person_id)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


# ── Meeting Instances ────────────────────────────────────────────────────────


@instances_router.post(
    "", response_model=MeetingInstanceDetail, status_code=status.HTTP_201_CREATED
)
async def create_meeting_instance(
    body: MeetingInstanceCreate,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingInstanceDetail:
    """Create a dated occurrence of a meeting."""
    service = _get_meeting_service(request)
    try:
        return await service.create_meeting_instance(actor, body)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@instances_router.post("/import-ics", response_model=ImportedMeetingInstance)
async def import_meeting_instance_from_ics(
    body: IcsImportRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> ImportedMeetingInstance:
    """Parse an ICS file into an instance form prefill."""
    service = _get_meeting_service(request)
    try:
        return await service.import_meeting_instance_from_ics(actor, body.file_content)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@instances_router.get("/{instance_id}", response_model=MeetingInstanceDetail)
async def get_meeting_instance(
    instance_id: str,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingInstanceDetail:
    """Get an instance with participants and its parent meeting."""
    service = _get_meeting_service(request)
    try:
        return await service.get_meeting_instance(actor, instance_id)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@instances_router.patch("/{instance_id}", response_model=MeetingInstanceDetail)
async def update_meeting_instance(
    instance_id: str,
    body: MeetingInstanceUpdate,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingInstanceDetail:
    """Update an instance. A participants list replaces the existing set."""
    service = _get_meeting_service(request)
    try:
        return await service.update_meeting_instance(actor, instance_id, body)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@instances_router.delete("/{instance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting_instance(
    instance_id: str,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> None:
    """Delete an instance and its participants."""
    service = _get_meeting_service(request)
    try:
        await service.delete_meeting_instance(actor, instance_id)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


# ── Instance Participants ────────────────────────────────────────────────────


@instances_router.post(
    "/{instance_id}/participants",
    response_model=MeetingInstanceParticipant,
    status_code=status.HTTP_201_CREATED,
)
async def add_meeting_instance_participant(
    instance_id: str,
    body: AddParticipantRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingInstanceParticipant:
    """Add a person to an instance."""
    service = _get_meeting_service(request)
    try:
        return await service.add_meeting_instance_participant(
            actor, instance_id, body.person_id, body.status
        )
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@instances_router.patch(
    "/{instance_id}/participants/{person_id}", response_model=MeetingInstanceParticipant
)
async def update_meeting_instance_participant_status(
    instance_id: str,
    person_id: str,
    body: ParticipantStatusUpdate,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> MeetingInstanceParticipant:
    """Change an instance participant's status."""
    service = _get_meeting_service(request)
    try:
        return await service.update_meeting_instance_participant_status(
            actor, instance_id, person_id, body.status
        )
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc


@instances_router.delete(
    "/{instance_id}/participants/{person_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_meeting_instance_participant(
    instance_id: str,
    person_id: str,
    request: Request,
    actor: ActorContext = Depends(get_actor),
) -> None:
    """Remove a person from an instance."""
    service = _get_meeting_service(request)
    try:
        await service.remove_meeting_instance_participant(actor, instance_id, person_id)
    except (ManagerOSError, ValidationError) as exc:
        raise _http_error(exc) from exc
