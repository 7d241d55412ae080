from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..core import Services, get_services
from ..schemas.users import ActionOkOut, AuthOut, LoginIn, PresenceIn, PresenceOut, RegisterIn, UserOut

router = APIRouter()


@router.post('/register', response_model=AuthOut, status_code=201)
async def register(payload: RegisterIn, services: Services = Depends(get_services)):
    user, token = await services.users.register(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        avatar=payload.avatar,
        bio=payload.bio,
    )
    return AuthOut(user=UserOut.model_validate(user), access_token=token)


@router.post('/login', response_model=AuthOut)
async def login(payload: LoginIn, services: Services = Depends(get_services)):
    user, token = await services.users.login(payload.email, payload.password)
    return AuthOut(user=UserOut.model_validate(user), access_token=token)


@router.post('/logout', response_model=ActionOkOut)
async def logout(
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    await services.users.logout(current_user['id'])
    return {'ok': True, 'message': 'Logout successful'}


@router.get('/me', response_model=UserOut)
async def me(
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.users.get_profile(current_user['id'])


@router.put('/presence', response_model=PresenceOut)
async def update_presence(
    payload: PresenceIn,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.users.set_presence(current_user['id'], payload.is_online)
