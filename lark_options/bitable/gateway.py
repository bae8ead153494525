"""
Record Gateway — single-page filtered record queries against a Bitable table.

The gateway is a dumb pipe: filters and field projections are forwarded
verbatim, only the first page is fetched, and the pagination markers are
handed back to the caller. No retries are attempted.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence

import orjson
import aiohttp

from ..conf import LarkConfig
from ..exceptions import UpstreamFailure, ValidationFailure
from .credentials import CredentialCache

logger = logging.getLogger("lark_options.bitable")

_RECORDS_PATH = "/bitable/v1/apps/{base_id}/tables/{table_id}/records"

# missing, invalid or expired access token
_TOKEN_ERROR_CODES = frozenset({99991661, 99991663, 99991668})


@dataclass
class RecordSet:
    """Records of one upstream page, in upstream order.

    ``records`` holds each item's field-name -> value mapping; only the
    projected fields that the upstream actually returned are present.
    """
    records: list[dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    page_token: Optional[str] = None

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def values(self, field_name: str) -> list[Any]:
        """Values of one field, skipping records where it is absent."""
        return [
            r[field_name] for r in self.records
            if r.get(field_name) is not None
        ]


class RecordGateway:
    """Issues record list-queries using the shared CredentialCache."""

    def __init__(
        self,
        config: LarkConfig,
        credentials: CredentialCache,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._config = config
        self._credentials = credentials
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def records_url(self, base_id: str, table_id: str) -> str:
        if not base_id or not table_id:
            raise ValidationFailure("Bitable base_id and table_id are required")
        return self._config.api_base + _RECORDS_PATH.format(
            base_id=base_id, table_id=table_id
        )

    async def fetch(
        self,
        filter_expression: str = "",
        field_names: Optional[Sequence[str]] = None,
        view_id: Optional[str] = None,
        page_size: Optional[int] = None,
        *,
        base_id: Optional[str] = None,
        table_id: Optional[str] = None,
    ) -> RecordSet:
        """Fetch the first page of records matching a filter.

        Args:
            filter_expression: Bitable filter formula, forwarded verbatim.
            field_names: Fields to return; None returns every field.
            view_id: Optional view to query.
            page_size: Records per page (defaults to the configured size).
            base_id: Base (app token); defaults to the configured base.
            table_id: Table id; defaults to the configured table.

        Returns:
            RecordSet of the first page. An absent or malformed items
            container yields an empty RecordSet.

        Raises:
            AuthFailure: If no access token could be obtained.
            UpstreamFailure: On network error, timeout or non-2xx status.
        """
        url = self.records_url(
            base_id or self._config.base_id, table_id or self._config.table_id
        )
        params: dict[str, Any] = {
            "page_size": page_size or self._config.page_size,
        }
        if filter_expression:
            params["filter"] = filter_expression
        if field_names is not None:
            params["field_names"] = orjson.dumps(list(field_names)).decode("utf-8")
        if view_id:
            params["view_id"] = view_id

        credential = await self._credentials.get_token()
        headers = {"Authorization": credential.bearer}
        timeout = aiohttp.ClientTimeout(total=self._config.timeout)
        session = await self._get_session()
        try:
            async with session.get(
                url, params=params, headers=headers, timeout=timeout
            ) as response:
                status = response.status
                body = await response.read()
        except asyncio.TimeoutError as err:
            logger.error("Record query timed out after %ss", self._config.timeout)
            raise UpstreamFailure("Record query timeout") from err
        except aiohttp.ClientError as err:
            logger.error("Record query request error: %s", err)
            raise UpstreamFailure(f"Record endpoint unavailable: {err}") from err

        if not 200 <= status < 300:
            logger.error("Record query returned HTTP %s", status)
            if self.token_rejected(status, body):
                # no retry here; the next call fetches a fresh token
                self._credentials.invalidate(credential)
            raise UpstreamFailure(
                f"Record endpoint returned HTTP {status}", status=status
            )
        try:
            payload = orjson.loads(body)
        except orjson.JSONDecodeError as err:
            raise UpstreamFailure("Record endpoint returned a non-JSON body") from err
        return self.normalize(payload)

    @staticmethod
    def token_rejected(status: int, body: bytes) -> bool:
        """True if the upstream refused the bearer token itself."""
        if status == 401:
            return True
        try:
            payload = orjson.loads(body)
        except orjson.JSONDecodeError:
            return False
        return isinstance(payload, dict) and payload.get("code") in _TOKEN_ERROR_CODES

    @staticmethod
    def normalize(payload: Any) -> RecordSet:
        """Turn an upstream list response into a RecordSet."""
        data = payload.get("data") if isinstance(payload, dict) else None
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.warning("No items found in record response")
            return RecordSet()
        result = RecordSet(
            has_more=bool(data.get("has_more", False)),
            page_token=data.get("page_token") or None,
        )
        for item in items:
            if not isinstance(item, dict):
                continue
            fields = item.get("fields")
            result.records.append(dict(fields) if isinstance(fields, dict) else {})
        logger.debug(
            "Record query returned %d record(s), has_more=%s",
            len(result), result.has_more,
        )
        return result

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
