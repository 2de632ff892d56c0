"""Category enums."""

from enum import Enum


class CategoryVisibility(str, Enum):
    """Category visibility for end users."""

    PUBLIC = "public"
    PRIVATE = "private"
