"""
Option lists — turn Bitable columns into dynamic option-list responses.

Provides:
- ``OptionService.fetch_column()`` — one column of the table as option values
- ``format_options()`` — values -> option dicts (stable, upstream order)
- ``success_body()`` / ``parameter_error_body()`` / ``failure_body()``
- ``render()`` — plain or encrypted response body
"""
import re
import hmac
import logging
from typing import Any, Callable, Optional

import orjson

from .conf import LarkConfig, EnvelopeConfig
from .envelope import encrypt
from .bitable import CredentialCache, RecordGateway, RecordSet, filters
from .exceptions import ValidationFailure

logger = logging.getLogger("lark_options.options")

_CJK = re.compile(r"[\u4e00-\u9fff]")


def contains_chinese(text: Optional[str]) -> bool:
    """Check if a string contains any CJK unified ideograph."""
    if not text:
        return False
    return bool(_CJK.search(str(text)))


def verify_token(presented: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time shared-secret check. An empty expected token disables it."""
    if not expected:
        return True
    if not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def _label(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        # multi-select / person fields come back as lists
        return ", ".join(
            str(v.get("name") or v.get("text") or "") if isinstance(v, dict) else str(v)
            for v in value
        )
    if isinstance(value, dict):
        return str(value.get("name") or value.get("text") or "")
    return str(value)


def format_options(
    values: list[Any],
    localize: bool = False,
) -> list[dict]:
    """Build option dicts ``{"id", "value", "isDefault"}`` in input order."""
    options = []
    for idx, value in enumerate(values):
        label = _label(value)
        option = {
            "id": f"options_id_{idx}",
            "value": label,
            "isDefault": False,
        }
        if localize:
            locale = "zh_cn" if contains_chinese(label) else "en_us"
            option["i18n"] = {locale: label}
        options.append(option)
    return options


def success_body(
    options: list[dict],
    has_more: bool = False,
    next_page_token: Optional[str] = None,
) -> dict:
    return {
        "code": 0,
        "msg": "success!",
        "data": {
            "result": {
                "options": options,
                "hasMore": has_more,
                "nextPageToken": next_page_token or "",
            }
        },
    }


def parameter_error_body() -> dict:
    return {
        "code": 1,
        "msg": "Parameter error!",
        "data": {"result": {"options": []}},
    }


def failure_body() -> dict:
    return {"code": 1, "msg": "failed", "data": {}}


def render(body: dict, passphrase: Optional[str] = None) -> bytes:
    """Serialize a body; with a passphrase, wrap it as ``{"encrypt": ...}``.

    Raises:
        EncryptionFailure: If the envelope cannot be produced.
    """
    plaintext = orjson.dumps(body)
    if not passphrase:
        return plaintext
    return orjson.dumps({"encrypt": encrypt(plaintext, passphrase)})


class OptionService:
    """Per-process composition of CredentialCache, RecordGateway and formatting.

    Constructed once at startup and shared by every request handler.
    """

    def __init__(
        self,
        lark: LarkConfig,
        envelope: Optional[EnvelopeConfig] = None,
        credentials: Optional[CredentialCache] = None,
        gateway: Optional[RecordGateway] = None,
    ):
        self.lark = lark
        self.envelope = envelope or EnvelopeConfig()
        self.credentials = credentials or CredentialCache(lark)
        self.gateway = gateway or RecordGateway(lark, self.credentials)

    def column(self, slug: str) -> str:
        """Resolve a route slug to its upstream field name."""
        try:
            return self.lark.columns[slug]
        except KeyError:
            raise ValidationFailure(f"Unknown option column: {slug}") from None

    async def fetch_column(
        self,
        target_field: str,
        filter_value: Optional[str] = None,
        output: Optional[Callable[[Any], Any]] = None,
    ) -> tuple[list[Any], RecordSet]:
        """Values of ``target_field``, optionally filtered on the filter field.

        Args:
            target_field: Upstream field projected and read from each record.
            filter_value: When set, only rows whose filter field equals it.
            output: Mapping applied to each non-empty value.

        Returns:
            (values in upstream order, the underlying RecordSet)
        """
        expression = ""
        if filter_value is not None:
            expression = filters.equals(self.lark.filter_field, filter_value)
        records = await self.gateway.fetch(expression, [target_field])
        values = records.values(target_field)
        if output is not None:
            values = [output(v) for v in values]
        logger.debug(
            "Column %s: %d value(s) (filtered=%s)",
            target_field, len(values), filter_value is not None,
        )
        return values, records

    async def option_list(
        self, target_field: str, filter_value: Optional[str] = None
    ) -> dict:
        """Build the success body for one column."""
        values, records = await self.fetch_column(target_field, filter_value)
        options = format_options(values, localize=self.envelope.localize)
        return success_body(options, records.has_more, records.page_token)

    def render(self, body: dict) -> bytes:
        return render(body, self.envelope.encrypt_key or None)

    async def close(self) -> None:
        await self.gateway.close()
        await self.credentials.close()
