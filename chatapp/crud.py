"""
Repositories over the async SQLAlchemy session factory.
Each method opens its own session; callers never share one.
"""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

from sqlalchemy import select, update, delete, or_, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from .domain import RequestStatus, canonical_pair
from .errors import (
    AlreadyFriendsError,
    ConflictError,
    DependencyError,
    RequestExistsError,
    RequestNotFoundError,
    ValidationError,
)
from .models import utcnow
from .models.users import User
from .models.friend_requests import FriendRequest
from .models.friendships import Friendship
from .models.messages import Message

logger = logging.getLogger(__name__)


class BaseRepository:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    @asynccontextmanager
    async def session(self):
        async with self.session_factory() as session:
            try:
                yield session
            except IntegrityError:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"{self.__class__.__name__} storage failure: {e}")
                raise DependencyError(f'storage failure in {self.__class__.__name__}') from e


class UserRepository(BaseRepository):

    async def create(self, username: str, email: str, hashed_password: str,
                     avatar: str = None, bio: str = None, is_online: bool = False) -> User:
        try:
            async with self.session() as session:
                user = User(
                    username=username,
                    email=email,
                    hashed_password=hashed_password,
                    avatar=avatar,
                    bio=bio,
                    is_online=is_online,
                    last_seen=utcnow(),
                )
                session.add(user)
                await session.commit()
                await session.refresh(user)
                return user
        except IntegrityError:
            raise ConflictError('Username or email is already registered')

    async def get(self, user_id: int) -> Optional[User]:
        async with self.session() as session:
            q = await session.execute(select(User).where(User.id == user_id))
            return q.scalars().first()

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self.session() as session:
            q = await session.execute(select(User).where(User.email == email))
            return q.scalars().first()

    async def get_by_username(self, username: str) -> Optional[User]:
        async with self.session() as session:
            q = await session.execute(select(User).where(User.username == username))
            return q.scalars().first()

    async def set_presence(self, user_id: int, is_online: bool) -> Optional[User]:
        async with self.session() as session:
            q = await session.execute(select(User).where(User.id == user_id))
            user = q.scalars().first()
            if not user:
                return None
            user.is_online = is_online
            user.last_seen = utcnow()
            await session.commit()
            await session.refresh(user)
            return user

    async def search(self, query: str, exclude_id: int, limit: int = 20) -> List[User]:
        pattern = f'%{query}%'
        async with self.session() as session:
            res = await session.execute(
                select(User)
                .where(User.id != exclude_id)
                .where(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
                .order_by(User.username.asc())
                .limit(limit)
            )
            return res.scalars().all()


class FriendRepository(BaseRepository):

    async def friendship_exists(self, user_a: int, user_b: int) -> bool:
        # rows are stored canonically, but match both orderings regardless
        async with self.session() as session:
            res = await session.execute(
                select(Friendship.id).where(
                    or_(
                        and_(Friendship.user_id1 == user_a, Friendship.user_id2 == user_b),
                        and_(Friendship.user_id1 == user_b, Friendship.user_id2 == user_a),
                    )
                )
            )
            return res.scalars().first() is not None

    async def find_request_between(self, user_a: int, user_b: int) -> Optional[FriendRequest]:
        low, high = canonical_pair(user_a, user_b)
        async with self.session() as session:
            res = await session.execute(
                select(FriendRequest).where(
                    FriendRequest.pair_low_id == low,
                    FriendRequest.pair_high_id == high,
                )
            )
            return res.scalars().first()

    async def get_request(self, request_id: int) -> Optional[FriendRequest]:
        async with self.session() as session:
            res = await session.execute(select(FriendRequest).where(FriendRequest.id == request_id))
            return res.scalars().first()

    async def create_request(self, sender_id: int, receiver_id: int, replace_rejected: bool = False) -> FriendRequest:
        """
        Insert a pending request. The unique pair constraint rejects a concurrent
        duplicate for the same unordered pair.
        """
        low, high = canonical_pair(sender_id, receiver_id)
        try:
            async with self.session() as session:
                async with session.begin():
                    if replace_rejected:
                        await session.execute(
                            delete(FriendRequest)
                            .where(
                                FriendRequest.pair_low_id == low,
                                FriendRequest.pair_high_id == high,
                                FriendRequest.status == RequestStatus.REJECTED.value,
                            )
                            .execution_options(synchronize_session=False)
                        )
                    fr = FriendRequest(
                        sender_id=sender_id,
                        receiver_id=receiver_id,
                        pair_low_id=low,
                        pair_high_id=high,
                        status=RequestStatus.PENDING.value,
                    )
                    session.add(fr)
                await session.refresh(fr)
                return fr
        except IntegrityError:
            raise RequestExistsError()

    async def _respond(self, session, request_id: int, acting_user_id: int, target: RequestStatus) -> FriendRequest:
        # conditional update: of two racing responders only one matches a pending row
        result = await session.execute(
            update(FriendRequest)
            .where(
                FriendRequest.id == request_id,
                FriendRequest.receiver_id == acting_user_id,
                FriendRequest.status == RequestStatus.PENDING.value,
            )
            .values(status=target.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise RequestNotFoundError()
        res = await session.execute(select(FriendRequest).where(FriendRequest.id == request_id))
        return res.scalars().one()

    async def accept_request(self, request_id: int, acting_user_id: int) -> Tuple[FriendRequest, Friendship]:
        """Mark the request accepted and create the friendship in one transaction"""
        try:
            async with self.session() as session:
                async with session.begin():
                    fr = await self._respond(session, request_id, acting_user_id, RequestStatus.ACCEPTED)
                    low, high = canonical_pair(fr.sender_id, fr.receiver_id)
                    friendship = Friendship(user_id1=low, user_id2=high, created_at=utcnow())
                    session.add(friendship)
                return fr, friendship
        except IntegrityError:
            raise AlreadyFriendsError()

    async def reject_request(self, request_id: int, acting_user_id: int) -> FriendRequest:
        async with self.session() as session:
            async with session.begin():
                fr = await self._respond(session, request_id, acting_user_id, RequestStatus.REJECTED)
            return fr

    async def list_pending(self, user_id: int) -> List[FriendRequest]:
        async with self.session() as session:
            res = await session.execute(
                select(FriendRequest)
                .options(selectinload(FriendRequest.sender))
                .where(
                    FriendRequest.receiver_id == user_id,
                    FriendRequest.status == RequestStatus.PENDING.value,
                )
                .order_by(FriendRequest.created_at.desc())
            )
            return res.scalars().all()

    async def list_friends(self, user_id: int) -> List[Tuple[User, object]]:
        """Other user's row and the friendship creation time, for each friendship touching user_id"""
        async with self.session() as session:
            res = await session.execute(
                select(User, Friendship.created_at)
                .join(
                    Friendship,
                    or_(
                        and_(Friendship.user_id1 == user_id, Friendship.user_id2 == User.id),
                        and_(Friendship.user_id2 == user_id, Friendship.user_id1 == User.id),
                    ),
                )
                .where(User.id != user_id)
                .order_by(Friendship.created_at.asc())
            )
            return [(row[0], row[1]) for row in res.all()]


class MessageRepository(BaseRepository):

    async def create(self, **values) -> Message:
        try:
            async with self.session() as session:
                m = Message(created_at=utcnow(), **values)
                session.add(m)
                await session.commit()
                await session.refresh(m)
                return m
        except IntegrityError:
            raise ValidationError('Message violates storage constraints')

    async def list_public(self, limit: int = 100) -> List[Message]:
        async with self.session() as session:
            res = await session.execute(
                select(Message)
                .where(Message.is_private.is_(False))
                .order_by(Message.created_at.asc(), Message.id.asc())
                .limit(limit)
            )
            return res.scalars().all()

    async def list_private(self, user_id: int, peer_id: int, limit: int = 100) -> List[Message]:
        async with self.session() as session:
            q = select(Message).where(
                Message.is_private.is_(True),
                ((Message.sender_id == user_id) & (Message.receiver_id == peer_id)) |
                ((Message.sender_id == peer_id) & (Message.receiver_id == user_id))
            ).order_by(Message.created_at.asc(), Message.id.asc()).limit(limit)
            res = await session.execute(q)
            return res.scalars().all()

    async def list_by_username(self, username: str, limit: int = 50) -> List[Message]:
        async with self.session() as session:
            res = await session.execute(
                select(Message)
                .where(Message.username == username, Message.is_private.is_(False))
                .order_by(Message.created_at.desc(), Message.id.desc())
                .limit(limit)
            )
            return res.scalars().all()
