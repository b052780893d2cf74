"""
Activities Router

Endpoints:
- GET /activities - List activities (public)
- GET /activities/{id} - Activity detail (public)
- POST /activities - Create an activity (coordinator, admin)
- PATCH /activities/{id} - Update an activity (owning coordinator, admin)
- DELETE /activities/{id} - Delete an activity (owning coordinator, admin)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import CurrentUser, get_current_user
from app.modules.activities.schemas import (
    ActivityCreate,
    ActivityDeleteResponse,
    ActivityResponse,
    ActivityUpdate,
)
from app.modules.activities.service import ActivityLifecycle, get_activity_lifecycle

router = APIRouter()


@router.get("", response_model=list[ActivityResponse])
async def list_activities(
    status_filter: str | None = Query(None, alias="status"),
    category: str | None = Query(None),
    coordinator_id: UUID | None = Query(None),
    lifecycle: ActivityLifecycle = Depends(get_activity_lifecycle),
) -> list[ActivityResponse]:
    activities = await lifecycle.list_activities(
        status=status_filter, category=category, coordinator_id=coordinator_id
    )
    return [ActivityResponse.model_validate(a) for a in activities]


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: UUID,
    lifecycle: ActivityLifecycle = Depends(get_activity_lifecycle),
) -> ActivityResponse:
    return ActivityResponse.model_validate(await lifecycle.get(activity_id))


@router.post(
    "",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Activity",
)
async def create_activity(
    data: ActivityCreate,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ActivityLifecycle = Depends(get_activity_lifecycle),
) -> ActivityResponse:
    activity = await lifecycle.create(user, data)
    return ActivityResponse.model_validate(activity)


@router.patch("/{activity_id}", response_model=ActivityResponse, summary="Update Activity")
async def update_activity(
    activity_id: UUID,
    data: ActivityUpdate,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ActivityLifecycle = Depends(get_activity_lifecycle),
) -> ActivityResponse:
    activity = await lifecycle.update(user, activity_id, data)
    return ActivityResponse.model_validate(activity)


@router.delete("/{activity_id}", response_model=ActivityDeleteResponse, summary="Delete Activity")
async def delete_activity(
    activity_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ActivityLifecycle = Depends(get_activity_lifecycle),
) -> ActivityDeleteResponse:
    deleted = await lifecycle.delete(user, activity_id)
    return ActivityDeleteResponse(
        id=activity_id,
        deleted=deleted,
        message="Activity and its applications were deleted.",
    )
