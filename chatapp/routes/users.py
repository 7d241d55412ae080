from fastapi import APIRouter, Depends, Query
from typing import List

from ..auth import get_current_user
from ..core import Services, get_services
from ..schemas.users import UserSearchOut

router = APIRouter()


@router.get('/search', response_model=List[UserSearchOut])
async def search_users(
    q: str = Query(..., min_length=1),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.users.search(q, current_user['id'])
