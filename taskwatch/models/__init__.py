from .user import User
from .event import Event, Visibility
from .occurrence import Occurrence, OccurrenceStatus
from .timeline import TimelinePost, TimelinePostKind, Reaction, ReactionType
from .friendship import FriendRequest, FriendRequestStatus, Friendship

__all__ = [
    "User",
    "Event",
    "Visibility",
    "Occurrence",
    "OccurrenceStatus",
    "TimelinePost",
    "TimelinePostKind",
    "Reaction",
    "ReactionType",
    "FriendRequest",
    "FriendRequestStatus",
    "Friendship",
]
