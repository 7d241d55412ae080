import logging
from typing import List, Tuple

from ..auth import create_access_token, hash_password, verify_password
from ..errors import AuthenticationError, ConflictError, UserNotFoundError

logger = logging.getLogger(__name__)


class UserService:
    """Registration, login and presence on top of the user repository"""

    def __init__(self, users):
        self.users = users

    @staticmethod
    def issue_token(user) -> str:
        return create_access_token({'id': user.id, 'username': user.username})

    async def register(self, username: str, email: str, password: str,
                       avatar: str = None, bio: str = None) -> Tuple[object, str]:
        if await self.users.get_by_email(email):
            raise ConflictError('User with this email already exists')
        if await self.users.get_by_username(username):
            raise ConflictError('Username is already taken')

        user = await self.users.create(
            username=username,
            email=email,
            hashed_password=hash_password(password),
            avatar=avatar,
            bio=bio,
            is_online=True,
        )
        logger.info(f"Registered user {user.id} ({user.username})")
        return user, self.issue_token(user)

    async def login(self, email: str, password: str) -> Tuple[object, str]:
        user = await self.users.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError('Invalid email or password')
        user = await self.users.set_presence(user.id, True)
        return user, self.issue_token(user)

    async def logout(self, user_id: int) -> None:
        await self.users.set_presence(user_id, False)

    async def set_presence(self, user_id: int, is_online: bool):
        user = await self.users.set_presence(user_id, is_online)
        if not user:
            raise UserNotFoundError()
        return user

    async def get_profile(self, user_id: int):
        user = await self.users.get(user_id)
        if not user:
            raise UserNotFoundError()
        return user

    async def search(self, query: str, user_id: int, limit: int = 20) -> List[object]:
        return await self.users.search(query, exclude_id=user_id, limit=limit)
