from .chat_actions import ChatActions, get_missing_keys
from .records import ChatRecords, UserRecords, get_stats

__all__ = ["ChatActions", "ChatRecords", "UserRecords", "get_missing_keys", "get_stats"]
