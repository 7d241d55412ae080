from .user_service import UserService
from .friends_service import FriendService
from .message_service import MessageService

__all__ = ['UserService', 'FriendService', 'MessageService']
