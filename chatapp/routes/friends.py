from fastapi import APIRouter, Depends, Path
from typing import List

from ..auth import get_current_user
from ..core import Services, get_services
from ..models import MAX_ID
from ..schemas.friendships import (
    FriendOut,
    FriendRequestIn,
    FriendRequestOut,
    FriendshipOut,
    PendingRequestOut,
)
from ..schemas.users import ActionOkOut, UserOut

router = APIRouter()


@router.post('/request', response_model=FriendRequestOut, status_code=201)
async def send_request(
    payload: FriendRequestIn,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.friends.send_request(current_user['id'], payload.receiver_id)


@router.post('/request/{request_id}/accept', response_model=FriendshipOut)
async def accept_request(
    request_id: int = Path(..., gt=0, le=MAX_ID),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.friends.accept_request(request_id, current_user['id'])


@router.post('/request/{request_id}/reject', response_model=ActionOkOut)
async def reject_request(
    request_id: int = Path(..., gt=0, le=MAX_ID),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    await services.friends.reject_request(request_id, current_user['id'])
    return {'ok': True, 'message': 'Friend request rejected successfully'}


@router.get('', response_model=List[FriendOut])
async def my_friends(
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    friends = await services.friends.list_friends(current_user['id'])
    return [
        FriendOut(**UserOut.model_validate(user).model_dump(), friendship_created_at=created_at)
        for user, created_at in friends
    ]


@router.get('/requests/pending', response_model=List[PendingRequestOut])
async def pending_requests(
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.friends.list_pending(current_user['id'])
