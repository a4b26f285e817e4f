"""
Remote Authority Interface

The remote authority is the external collaborator that decides whether
a client's change was computed against the current version of a goal.

Contract of sync_transaction(goal_id, transaction, client_version):
1. Look up (or lazily create) the authority's record for the goal
2. If its version is GREATER than client_version, reject and return
   its current record as latest_goal
3. Otherwise accept: advance its version by exactly 1, persist, and
   return the new version

Equal-or-lower client versions are accepted.

Implementations signal "could not complete" by raising a
RemoteAuthorityError. They must not report unreachability as a
rejection.
"""

from abc import ABC, abstractmethod

from savings_sync.models.goal import SavingsTransaction
from savings_sync.models.sync import RemoteSyncResponse


class RemoteAuthorityInterface(ABC):
    """Abstract remote authority consulted by the SavingsManager."""

    @abstractmethod
    async def sync_transaction(
        self,
        goal_id: str,
        transaction: SavingsTransaction,
        client_version: int,
    ) -> RemoteSyncResponse:
        """
        Ask the authority to accept a transaction.

        Args:
            goal_id: Goal the transaction belongs to
            transaction: The optimistically applied transaction
            client_version: Version the client computed the change against

        Returns:
            The authority's verdict

        Raises:
            RemoteAuthorityError: If no verdict could be obtained
        """
        pass


class RemoteAuthorityError(Exception):
    """Base exception: the sync call did not produce a usable verdict."""
    pass


class RemoteUnavailableError(RemoteAuthorityError):
    """Authority unreachable, timed out, or failing on its side."""
    pass


class RemoteProtocolError(RemoteAuthorityError):
    """Authority answered with something outside the contract."""
    pass
