from marketplace.db.models.booking import Booking, BookingStatus, LessonType
from marketplace.db.models.message import Message
from marketplace.db.models.profile import Profile, UserType
from marketplace.db.models.review import Review
from marketplace.db.models.skill import Skill, TutorSkill
from marketplace.db.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Profile",
    "UserType",
    "Skill",
    "TutorSkill",
    "Booking",
    "BookingStatus",
    "LessonType",
    "Message",
    "Review",
]
