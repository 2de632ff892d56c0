"""Trigger and macro enums."""

from enum import Enum


class TriggerConditionType(str, Enum):
    """Conditions a trigger can evaluate at ticket creation."""

    CATEGORY_MATCH = "category_match"
    STATUS_CHANGE = "status_change"
    PRIORITY_EQ = "priority_eq"
    PRIORITY_GTE = "priority_gte"
    PRIORITY_LTE = "priority_lte"


class TriggerActionType(str, Enum):
    """Actions a trigger can apply."""

    ASSIGN_USER = "assign_user"
    CHANGE_STATUS = "change_status"
    SET_PRIORITY = "set_priority"
    ADD_COMMENT = "add_comment"


class MacroActionType(str, Enum):
    """Actions a macro can replay."""

    ADD_COMMENT = "add_comment"
    CHANGE_STATUS = "change_status"
    ASSIGN_USER = "assign_user"
    SET_PRIORITY = "set_priority"


class AutomationSource(str, Enum):
    """Which engine is applying an action."""

    TRIGGER = "trigger"
    MACRO = "macro"
