"""
HTTP Remote Authority Client

Talks to a savings backend over HTTP using httpx.

    POST {base_url}/goals/{goal_id}/transactions/sync
    body: {"goalId": ..., "transaction": {...}, "clientVersion": n}

    200 -> {"success": true,  "newVersion": n}
    409 -> {"success": false, "newVersion": n, "latestGoal": {...}}

Everything else - connection failures, timeouts, 5xx, bodies that do
not match the contract - raises a RemoteAuthorityError, which the
SavingsManager treats as "unreachable".

DESIGN DECISION: Only failures to establish a connection are retried.
In that case the request never reached the authority, so retrying
cannot apply a transaction twice. Timeouts are NOT retried because the
authority may already have accepted the change.
"""

from typing import Optional

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from savings_sync.models.goal import SavingsTransaction
from savings_sync.models.sync import RemoteSyncRequest, RemoteSyncResponse
from savings_sync.services.remote.interface import (
    RemoteAuthorityInterface,
    RemoteProtocolError,
    RemoteUnavailableError,
)


logger = structlog.get_logger(__name__)

VERDICT_STATUSES = {httpx.codes.OK, httpx.codes.CONFLICT}


class HttpRemoteAuthority(RemoteAuthorityInterface):
    """
    Remote authority reached over HTTP.

    Pass an httpx.AsyncClient to reuse connections (or to inject a
    transport in tests); otherwise a client is opened per call.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        connect_retries: int = 3,
        retry_wait_seconds: float = 0.5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._connect_retries = connect_retries
        self._retry_wait_seconds = retry_wait_seconds
        self._client = client

    def _sync_url(self, goal_id: str) -> str:
        return f"{self._base_url}/goals/{goal_id}/transactions/sync"

    async def _post(self, client: httpx.AsyncClient, url: str, body: dict) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._connect_retries),
            wait=wait_exponential(multiplier=self._retry_wait_seconds, max=4),
            retry=retry_if_exception_type(httpx.ConnectError),
            reraise=True,
        ):
            with attempt:
                return await client.post(url, json=body, timeout=self._timeout)

    async def _send(self, url: str, body: dict) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._post(self._client, url, body)
            async with httpx.AsyncClient() as client:
                return await self._post(client, url, body)
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"Remote authority unreachable: {e!r}") from e

    async def sync_transaction(
        self,
        goal_id: str,
        transaction: SavingsTransaction,
        client_version: int,
    ) -> RemoteSyncResponse:
        request = RemoteSyncRequest(
            goal_id=goal_id,
            transaction=transaction,
            client_version=client_version,
        )
        url = self._sync_url(goal_id)
        response = await self._send(url, request.model_dump(mode="json", by_alias=True))

        if response.status_code >= 500:
            raise RemoteUnavailableError(
                f"Remote authority failed with HTTP {response.status_code}"
            )
        if response.status_code not in VERDICT_STATUSES:
            raise RemoteProtocolError(
                f"Unexpected HTTP {response.status_code} from remote authority"
            )

        try:
            verdict = RemoteSyncResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise RemoteProtocolError(f"Malformed remote verdict: {e}") from e

        if verdict.success != (response.status_code == httpx.codes.OK):
            raise RemoteProtocolError(
                f"HTTP {response.status_code} disagrees with success={verdict.success}"
            )

        logger.debug(
            "remote_verdict",
            goal_id=goal_id,
            client_version=client_version,
            success=verdict.success,
            new_version=verdict.new_version,
        )
        return verdict
