from .conversation import Conversation
from .message import Message
from .setting import Setting

__all__ = ["Conversation", "Message", "Setting"]
