from fastapi import APIRouter
from .auth import router as auth_router
from .users import router as users_router
from .friends import router as friends_router
from .messages import router as messages_router
from .pusher import router as pusher_router

router = APIRouter()
router.include_router(auth_router, prefix='/auth', tags=['auth'])
router.include_router(users_router, prefix='/users', tags=['users'])
router.include_router(friends_router, prefix='/friends', tags=['friends'])
router.include_router(messages_router, prefix='/messages', tags=['messages'])
router.include_router(pusher_router, prefix='/pusher', tags=['pusher'])
