from fastapi import HTTPException, status


class ChatError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Internal server error"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.detail)


class ValidationError(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Validation failed"


class AuthenticationError(ChatError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid or expired token"


class AuthzError(ChatError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Forbidden"


class NotFoundError(ChatError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class ConflictError(ChatError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Resource already exists"


class DependencyError(ChatError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Dependency failure"

    def __init__(self, reason: str = None):
        # reason stays server-side, the response only carries the generic detail
        super().__init__()
        self.reason = reason


class SelfRequestError(ValidationError):
    detail = "Cannot send friend request to yourself"


class UserNotFoundError(NotFoundError):
    detail = "User not found"


class AlreadyFriendsError(ConflictError):
    detail = "Already friends with this user"


class RequestExistsError(ConflictError):
    detail = "Friend request already exists"


class RequestNotFoundError(NotFoundError):
    detail = "Friend request not found or already processed"


class NotFriendsError(AuthzError):
    detail = "Can only send messages to friends"


class EmptyContentError(ValidationError):
    detail = "Either message or file must be provided"


class ChannelAccessDenied(AuthzError):
    detail = "Unauthorized channel access"
