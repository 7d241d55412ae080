"""
Friend-request state machine and friendship rules.
Pure functions only: no sessions, no I/O.
"""
from enum import Enum
from typing import Tuple


class RequestStatus(str, Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'


# accepted and rejected are terminal
TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.ACCEPTED, RequestStatus.REJECTED},
    RequestStatus.ACCEPTED: set(),
    RequestStatus.REJECTED: set(),
}


def canonical_pair(user_a: int, user_b: int) -> Tuple[int, int]:
    """Order a pair of user ids as (lower, upper)"""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def can_transition(current, target) -> bool:
    return RequestStatus(target) in TRANSITIONS[RequestStatus(current)]


def can_respond(request, acting_user_id: int, target=RequestStatus.ACCEPTED) -> bool:
    """Only the receiver may answer, and only while the request is pending"""
    return (
        request is not None
        and request.receiver_id == acting_user_id
        and can_transition(request.status, target)
    )


def blocks_new_request(existing_status, allow_rerequest_after_reject: bool) -> bool:
    """Whether an existing request for the pair forbids sending another one"""
    if existing_status is None:
        return False
    if RequestStatus(existing_status) is RequestStatus.REJECTED:
        return not allow_rerequest_after_reject
    return True
