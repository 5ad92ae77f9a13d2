from .auth_api import AuthApi
from .feed_api import FeedApi
from .messages_api import MessagesApi
from .profile_api import ProfileApi
from .gyms_api import GymsApi

__all__ = ["AuthApi", "FeedApi", "MessagesApi", "ProfileApi", "GymsApi"]
