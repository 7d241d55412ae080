import logging
from typing import List, Tuple

from ..domain import RequestStatus, blocks_new_request, can_respond
from ..errors import (
    AlreadyFriendsError,
    RequestExistsError,
    RequestNotFoundError,
    SelfRequestError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


class FriendService:
    """
    Friend-request lifecycle and the friendship registry.

    Requests move pending -> accepted | rejected exactly once. Accepting writes
    the status change and the canonical friendship row in one transaction.
    """

    def __init__(self, users, friends, allow_rerequest_after_reject: bool = True):
        self.users = users
        self.friends = friends
        self.allow_rerequest_after_reject = allow_rerequest_after_reject

    async def send_request(self, sender_id: int, receiver_id: int):
        """
        Create a pending request from sender to receiver.

        Raises:
            SelfRequestError: sender and receiver are the same user
            UserNotFoundError: receiver does not exist
            AlreadyFriendsError: the pair is already friends
            RequestExistsError: a request already exists for the pair, in either direction
        """
        if sender_id == receiver_id:
            raise SelfRequestError()
        if not await self.users.get(receiver_id):
            raise UserNotFoundError()
        if await self.friends.friendship_exists(sender_id, receiver_id):
            raise AlreadyFriendsError()

        existing = await self.friends.find_request_between(sender_id, receiver_id)
        existing_status = existing.status if existing else None
        if blocks_new_request(existing_status, self.allow_rerequest_after_reject):
            raise RequestExistsError()

        fr = await self.friends.create_request(
            sender_id, receiver_id, replace_rejected=existing is not None,
        )
        logger.info(f"Friend request {fr.id} sent: {sender_id} -> {receiver_id}")
        return fr

    async def _ensure_can_respond(self, request_id: int, acting_user_id: int, target: RequestStatus):
        # racing responders are still settled by the conditional update in the repository
        fr = await self.friends.get_request(request_id)
        if not can_respond(fr, acting_user_id, target):
            raise RequestNotFoundError()

    async def accept_request(self, request_id: int, acting_user_id: int):
        await self._ensure_can_respond(request_id, acting_user_id, RequestStatus.ACCEPTED)
        fr, friendship = await self.friends.accept_request(request_id, acting_user_id)
        logger.info(f"Friend request {fr.id} accepted, friendship {friendship.user_id1}-{friendship.user_id2}")
        return friendship

    async def reject_request(self, request_id: int, acting_user_id: int):
        await self._ensure_can_respond(request_id, acting_user_id, RequestStatus.REJECTED)
        fr = await self.friends.reject_request(request_id, acting_user_id)
        logger.info(f"Friend request {fr.id} rejected by {acting_user_id}")
        return fr

    async def are_friends(self, user_a: int, user_b: int) -> bool:
        return await self.friends.friendship_exists(user_a, user_b)

    async def list_friends(self, user_id: int) -> List[Tuple[object, object]]:
        return await self.friends.list_friends(user_id)

    async def list_pending(self, user_id: int):
        return await self.friends.list_pending(user_id)
