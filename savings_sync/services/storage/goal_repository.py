"""
Goal Repository

Persistence adapter between the SavingsManager and a key-value medium.

The whole goal set of one user is stored as a single JSON array under
a key built from the user id and a schema tag:

    savings_v2_<user_id>

DESIGN DECISION: The schema tag is part of the key, not of the value.
Bumping the tag makes old data invisible instead of half-readable.
There is no migration path by design.
"""

from collections.abc import Iterable

from pydantic import TypeAdapter, ValidationError

from savings_sync.models.goal import Goal
from savings_sync.services.storage.interface import (
    CorruptDataError,
    KeyValueStoreInterface,
)


_GOAL_LIST = TypeAdapter(list[Goal])


class GoalRepository:
    """
    Scoped load/save of a user's full goal set.

    Storage errors are not handled here; they reach the caller as
    StorageError.
    """

    def __init__(
        self,
        store: KeyValueStoreInterface,
        schema_tag: str = "v2",
        key_prefix: str = "savings",
    ):
        self._store = store
        self._schema_tag = schema_tag
        self._key_prefix = key_prefix

    @property
    def store(self) -> KeyValueStoreInterface:
        return self._store

    def storage_key(self, user_id: str) -> str:
        """Key holding every goal of one user under the current schema."""
        return f"{self._key_prefix}_{self._schema_tag}_{user_id}"

    def load(self, user_id: str) -> list[Goal]:
        """
        Load a user's goals in stored order.

        Returns:
            The stored goals, or an empty list if none were ever saved

        Raises:
            CorruptDataError: If the stored value is not a valid goal list
            StorageError: If the medium cannot be read
        """
        key = self.storage_key(user_id)
        raw = self._store.get(key)
        if not raw:
            return []

        try:
            return _GOAL_LIST.validate_json(raw)
        except ValidationError as e:
            raise CorruptDataError(
                f"Stored goals under {key} are unreadable: {e.error_count()} errors"
            ) from e

    def save(self, user_id: str, goals: Iterable[Goal]) -> None:
        """
        Replace the stored goal set of a user.

        Raises:
            StorageError: If the write fails
        """
        payload = _GOAL_LIST.dump_json(list(goals), by_alias=True)
        self._store.set(self.storage_key(user_id), payload.decode("utf-8"))
