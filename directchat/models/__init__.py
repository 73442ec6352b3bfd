from .users import User
from .messages import Message

__all__ = ["User", "Message"]
