from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, UploadFile
from typing import List, Optional

from ..auth import get_current_user
from ..core import Services, get_services
from ..models import MAX_ID
from ..schemas.messages import MessageIn, MessageOut

router = APIRouter()


async def _enforce_rate_limit(services: Services, user_id: int):
    # max MESSAGE_RATE_LIMIT messages per hour
    if not await services.rate_limiter.check(
        user_id,
        "send_message",
        limit=services.message_rate_limit,
        window=3600
    ):
        raise HTTPException(429, "Rate limit exceeded. Too many messages.")


@router.get('', response_model=List[MessageOut])
async def public_messages(services: Services = Depends(get_services)):
    return await services.messages.list_public()


@router.post('', response_model=MessageOut, status_code=201)
async def send(
    payload: MessageIn,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    await _enforce_rate_limit(services, current_user['id'])
    return await services.messages.create_message(
        current_user['id'],
        current_user['username'],
        body=payload.message,
        receiver_id=payload.receiver_id,
    )


@router.post('/file', response_model=MessageOut, status_code=201)
async def send_file(
    file: UploadFile = File(...),
    message: Optional[str] = Form(None),
    receiver_id: Optional[int] = Form(None, gt=0, le=MAX_ID),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    await _enforce_rate_limit(services, current_user['id'])
    # refuse before anything is written to storage
    await services.messages.ensure_can_send(current_user['id'], receiver_id)
    attachment = await services.storage.save(file)
    try:
        return await services.messages.create_message(
            current_user['id'],
            current_user['username'],
            body=message,
            attachment=attachment,
            receiver_id=receiver_id,
        )
    except Exception:
        services.storage.discard(attachment)
        raise


@router.get('/private/{friend_id}', response_model=List[MessageOut])
async def private_dialog(
    friend_id: int = Path(..., gt=0, le=MAX_ID),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.messages.list_private(current_user['id'], friend_id)


@router.get('/user/{username}', response_model=List[MessageOut])
async def messages_by_user(username: str, services: Services = Depends(get_services)):
    return await services.messages.list_by_username(username)
