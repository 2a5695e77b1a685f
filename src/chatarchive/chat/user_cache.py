"""In-memory username <-> user id cache, fed by every message the bot sees."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserInfo:
    display_name: str
    username: str | None = None


class UserCache:
    """Resolves ``@username`` mentions to user ids for search filters.

    Usernames are matched case-insensitively.  When a user renames, the old
    username stops resolving.
    """

    def __init__(self) -> None:
        self._name_to_id: dict[str, int] = {}
        self._id_to_info: dict[int, UserInfo] = {}

    def __len__(self) -> int:
        return len(self._id_to_info)

    def update(self, user_id: int, username: str | None, display_name: str) -> None:
        previous = self._id_to_info.get(user_id)
        new_key = username.lower() if username else None
        if previous is not None and previous.username:
            old_key = previous.username.lower()
            if old_key != new_key and self._name_to_id.get(old_key) == user_id:
                del self._name_to_id[old_key]

        if new_key:
            self._name_to_id[new_key] = user_id
        self._id_to_info[user_id] = UserInfo(display_name=display_name, username=username or None)

    def resolve_username(self, username: str) -> int | None:
        """``"@Alice"`` or ``"alice"`` -> user id, or None if never seen."""
        return self._name_to_id.get(username.lstrip("@").lower())

    def display_name(self, user_id: int | None) -> str | None:
        if user_id is None:
            return None
        info = self._id_to_info.get(user_id)
        return info.display_name if info else None


__all__ = ["UserCache", "UserInfo"]
