"""
Social graph domain — permission names and limits.
"""
from __future__ import annotations

import enum

MAX_BLOCK_REASON_LENGTH: int = 500


class Permission(str, enum.Enum):
    CAN_FOLLOW = "can_follow"
    CAN_UNFOLLOW = "can_unfollow"
    CAN_BLOCK = "can_block"
    CAN_UNBLOCK = "can_unblock"
    CAN_SEND_NEW_MESSAGE = "can_send_new_message"
    CAN_CONTINUE_EXISTING_CONVERSATION = "can_continue_existing_conversation"
    CAN_VIEW_FULL_PROFILE = "can_view_full_profile"


PermissionSet = frozenset[Permission]

MESSAGING_PERMISSIONS: PermissionSet = frozenset(
    {Permission.CAN_SEND_NEW_MESSAGE, Permission.CAN_CONTINUE_EXISTING_CONVERSATION}
)

FOLLOW_PERMISSIONS: PermissionSet = frozenset(
    {Permission.CAN_FOLLOW, Permission.CAN_UNFOLLOW}
)
