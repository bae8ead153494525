"""
Credential Cache — app access token acquisition with single-flight refresh.

One CredentialCache is constructed per process and handed to every
RecordGateway. Concurrent callers arriving while the token is stale wait
on the same refresh instead of each calling the auth endpoint.

Security Note:
    Never log the app secret or token values.
"""
import time
import asyncio
import logging
from typing import Callable, Optional

import orjson
import aiohttp
from pydantic import BaseModel, SecretStr

from ..conf import LarkConfig
from ..exceptions import AuthFailure

logger = logging.getLogger("lark_options.bitable")

TOKEN_FIELD = "app_access_token"


class Credential(BaseModel):
    """App access token plus the monotonic time it was issued."""

    token: SecretStr
    issued_at: float
    ttl: int

    model_config = {"frozen": True}

    def __repr__(self) -> str:
        return f"<Credential issued_at={self.issued_at:.0f} ttl={self.ttl}>"

    def __str__(self) -> str:
        return self.__repr__()

    @property
    def bearer(self) -> str:
        """Authorization header value."""
        return f"Bearer {self.token.get_secret_value()}"

    def age(self, now: float) -> float:
        return now - self.issued_at


class CredentialCache:
    """Caches the upstream app access token and refreshes it before expiry.

    States: empty -> valid -> stale -> valid (refreshed) -> ...
    Concurrent callers share one in-flight refresh and receive its credential
    or its AuthFailure. A failed refresh leaves the previous state untouched
    so the next call retries immediately.
    """

    def __init__(
        self,
        config: LarkConfig,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._inflight: Optional[asyncio.Future] = None
        self.refresh_count = 0

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def is_stale(self, credential: Optional[Credential]) -> bool:
        """True if no credential exists or its age passed the refresh window."""
        if credential is None:
            return True
        window = max(credential.ttl - self._config.safety_margin, 0)
        return credential.age(self._clock()) > window

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def get_token(self) -> Credential:
        """Return a valid credential, refreshing it if stale.

        Raises:
            AuthFailure: If the auth endpoint cannot supply a token.
        """
        credential = self._credential
        if not self.is_stale(credential):
            return credential
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh_and_store())
            self._inflight.add_done_callback(self._settled)
        # a cancelled caller must not cancel the refresh other callers share
        return await asyncio.shield(self._inflight)

    def _settled(self, future: asyncio.Future) -> None:
        if self._inflight is future:
            self._inflight = None
        if not future.cancelled():
            # marks the failure as retrieved when every waiter was cancelled
            future.exception()

    async def _refresh_and_store(self) -> Credential:
        credential = await self._refresh()
        self._credential = credential
        return credential

    async def _refresh(self) -> Credential:
        session = await self._get_session()
        payload = {
            "app_id": self._config.app_id,
            "app_secret": self._config.app_secret,
        }
        headers = {"Content-Type": "application/json; charset=utf-8"}
        timeout = aiohttp.ClientTimeout(total=self._config.timeout)
        self.refresh_count += 1
        logger.debug("Requesting app access token for app %s", self._config.app_id)
        try:
            async with session.post(
                self._config.auth_url,
                data=orjson.dumps(payload),
                headers=headers,
                timeout=timeout,
            ) as response:
                status = response.status
                body = await response.read()
        except asyncio.TimeoutError as err:
            logger.error("Auth endpoint timed out after %ss", self._config.timeout)
            raise AuthFailure("Auth endpoint timeout") from err
        except aiohttp.ClientError as err:
            logger.error("Auth endpoint request error: %s", err)
            raise AuthFailure(f"Auth endpoint unavailable: {err}") from err

        if not 200 <= status < 300:
            logger.error("Auth endpoint returned HTTP %s", status)
            raise AuthFailure(
                f"Auth endpoint returned HTTP {status}", status=status
            )
        try:
            data = orjson.loads(body)
        except orjson.JSONDecodeError as err:
            raise AuthFailure("Auth endpoint returned a malformed body") from err

        token = data.get(TOKEN_FIELD) if isinstance(data, dict) else None
        if not token or not isinstance(token, str):
            code = data.get("code") if isinstance(data, dict) else None
            logger.error("Auth endpoint returned no token (code=%s)", code)
            raise AuthFailure(f"Auth endpoint returned no token (code={code})")

        ttl = self._config.token_ttl
        expire = data.get("expire")
        if isinstance(expire, int) and 0 < expire < ttl:
            ttl = expire
        logger.info("App access token refreshed (ttl=%ss)", ttl)
        return Credential(
            token=SecretStr(token), issued_at=self._clock(), ttl=ttl
        )

    def invalidate(self, credential: Optional[Credential] = None) -> None:
        """Drop the cached credential; the next call refreshes.

        With ``credential``, only drop it if it is still the cached one, so a
        token rejected by an older request cannot evict a newer refresh.
        """
        if credential is None or self._credential is credential:
            self._credential = None

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
