"""
Applications Router

Endpoints:
- POST /applications - Apply to an activity (student)
- GET /applications - Applications visible to the caller
- GET /applications/stats/{activity_id} - Counts per status (owning coordinator, admin)
- GET /applications/attendance/approved - Approved roster of an activity
- GET /applications/{id} - Application detail
- PATCH /applications/{id}/status - Approve / reject / reset (owning coordinator, admin)
- DELETE /applications/{id} - Delete an application (admin)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.auth import CurrentUser, get_current_user
from app.modules.applications.models import ApplicationStatus
from app.modules.applications.schemas import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationStatusUpdate,
    RosterEntry,
)
from app.modules.applications.service import ApplicationLifecycle, get_application_lifecycle

router = APIRouter()


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to Activity",
)
async def submit_application(
    data: ApplicationCreate,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
) -> ApplicationResponse:
    application = await lifecycle.submit(user, data.activity_id, data.notes)
    return ApplicationResponse.model_validate(application)


@router.get("", response_model=list[ApplicationResponse])
async def list_applications(
    activity_id: UUID | None = Query(None),
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
) -> list[ApplicationResponse]:
    applications = await lifecycle.list_applications(
        user, activity_id=activity_id, status=status_filter
    )
    return [ApplicationResponse.model_validate(a) for a in applications]


@router.get("/stats/{activity_id}", response_model=dict[str, int], summary="Application Stats")
async def application_stats(
    activity_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
) -> dict[str, int]:
    return await lifecycle.stats(user, activity_id)


@router.get("/attendance/approved", response_model=list[RosterEntry], summary="Approved Roster")
async def approved_roster(
    activity_id: UUID = Query(...),
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
) -> list[RosterEntry]:
    roster = await lifecycle.approved_roster(user, activity_id)
    return [RosterEntry.model_validate(dict(entry)) for entry in roster]


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
) -> ApplicationResponse:
    return ApplicationResponse.model_validate(await lifecycle.get(user, application_id))


@router.patch(
    "/{application_id}/status",
    response_model=ApplicationResponse,
    summary="Set Application Status",
)
async def set_application_status(
    application_id: UUID,
    data: ApplicationStatusUpdate,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
) -> ApplicationResponse:
    application = await lifecycle.set_status(user, application_id, data.status, data.notes)
    return ApplicationResponse.model_validate(application)


@router.delete(
    "/{application_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete Application",
)
async def delete_application(
    application_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
) -> Response:
    await lifecycle.delete(user, application_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
