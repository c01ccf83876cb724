# hackzilla/models/enums.py
from enum import Enum


class TeamStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Meal(str, Enum):
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACKS = "snacks"


class MealStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"


class UserRole(str, Enum):
    ADMIN = "admin"
    VOLUNTEER = "volunteer"
