"""Permission name helpers.

Handlers declare permissions by their Discord names, either PascalCase
(``KickMembers``, ``SendTTSMessages``) or py-cord attribute style
(``kick_members``). Every form is resolved against the flags py-cord knows, so
acronyms need no special casing: names are compared with underscores removed
and case folded.
"""

from __future__ import annotations

from typing import AbstractSet, Dict, Iterable, Optional

import discord


def _key(name: str) -> str:
    return name.replace("_", "").lower()


# "sendttsmessages" -> "send_tts_messages"
PERMISSION_FLAGS: Dict[str, str] = {_key(flag): flag for flag in discord.Permissions.VALID_FLAGS}

ADMINISTRATOR_KEY = _key("administrator")


def is_known_permission(name: str) -> bool:
    return isinstance(name, str) and _key(name) in PERMISSION_FLAGS


def attribute_name(name: str) -> str:
    """``KickMembers`` / ``SendTTSMessages`` -> ``kick_members`` / ``send_tts_messages``.

    Raises:
        ValueError: If ``name`` is not a Discord permission.
    """
    try:
        return PERMISSION_FLAGS[_key(name)]
    except KeyError:
        raise ValueError(f"'{name}' is not a valid permission name") from None


def normalize_permission(name: str) -> str:
    """``kick_members`` / ``KickMembers`` / ``kickMembers`` -> ``KickMembers``."""
    return "".join(part.capitalize() for part in attribute_name(name).split("_"))


def granted_permissions(permissions: Optional[discord.Permissions]) -> Optional[frozenset[str]]:
    """Names of every permission switched on in ``permissions``."""
    if permissions is None:
        return None
    return frozenset(normalize_permission(name) for name, value in permissions if value)


def has_permissions(required: Iterable[str], granted: Optional[AbstractSet[str]]) -> bool:
    """True when every required permission is granted.

    Nothing required always passes. With requirements, a missing permission
    context (``granted is None``, e.g. a direct message) always fails.
    """
    needed = {_key(name) for name in required}
    if not needed:
        return True
    if granted is None:
        return False
    held = {_key(name) for name in granted}
    if ADMINISTRATOR_KEY in held:
        return True
    return needed <= held


def permissions_value(required: Iterable[str]) -> Optional[int]:
    """Bit value for ``default_member_permissions`` in a slash command payload."""
    names = [attribute_name(name) for name in required]
    if not names:
        return None
    return discord.Permissions(**{name: True for name in names}).value
