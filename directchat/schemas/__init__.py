from .message import (
    CamelModel,
    MessageCreate,
    MessageRecord,
    MessageDeleteResponse,
    MessagesClearResponse
)
from .presence import PresenceStatus, PresenceRecord, OnlineUsersResponse, DECLARABLE_STATUSES
from .user import UserCreate, UserLogin, ProfileUpdate, UserResponse, AuthResponse, SidebarUser

__all__ = [
    "CamelModel",
    "MessageCreate",
    "MessageRecord",
    "MessageDeleteResponse",
    "MessagesClearResponse",
    "PresenceStatus",
    "PresenceRecord",
    "OnlineUsersResponse",
    "DECLARABLE_STATUSES",
    "UserCreate",
    "UserLogin",
    "ProfileUpdate",
    "UserResponse",
    "AuthResponse",
    "SidebarUser",
]
