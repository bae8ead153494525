"""Shared fixtures: a fake Lark upstream served by aiohttp's TestServer."""
import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from lark_options.conf import LarkConfig

BASE_ID = "Gflaw9RBkiaHAokB4axlHLpygVb"
TABLE_ID = "tblLSW8oShBhPOZg"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLark:
    """In-process stand-in for the auth and Bitable record endpoints."""

    def __init__(self):
        self.auth_calls = 0
        self.auth_status = 200
        self.auth_body = None
        self.auth_delay = 0.0
        self.record_status = 200
        self.record_payload = {"code": 0, "data": {"items": [], "has_more": False}}
        self.record_raw = None
        self.record_delay = 0.0
        self.record_requests = []

    async def _auth(self, request: web.Request) -> web.Response:
        self.auth_calls += 1
        payload = await request.json()
        if self.auth_delay:
            await asyncio.sleep(self.auth_delay)
        if self.auth_status != 200:
            return web.json_response({"code": 10003}, status=self.auth_status)
        if self.auth_body is not None:
            return web.json_response(self.auth_body)
        return web.json_response({
            "code": 0,
            "msg": "ok",
            "app_access_token": f"t-{payload['app_id']}-{self.auth_calls}",
            "expire": 7200,
        })

    async def _records(self, request: web.Request) -> web.Response:
        self.record_requests.append({
            "base_id": request.match_info["base_id"],
            "table_id": request.match_info["table_id"],
            "query": dict(request.query),
            "authorization": request.headers.get("Authorization"),
        })
        if self.record_delay:
            await asyncio.sleep(self.record_delay)
        if self.record_raw is not None:
            return web.Response(text=self.record_raw)
        return web.json_response(self.record_payload, status=self.record_status)

    def set_items(self, items, has_more=False, page_token=None):
        data = {"items": items, "has_more": has_more, "total": len(items)}
        if page_token:
            data["page_token"] = page_token
        self.record_payload = {"code": 0, "msg": "success", "data": data}

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/auth", self._auth)
        app.router.add_get(
            "/open-apis/bitable/v1/apps/{base_id}/tables/{table_id}/records",
            self._records,
        )
        return app

    @asynccontextmanager
    async def serve(self, **overrides):
        """Run the fake upstream and yield a LarkConfig pointing at it."""
        async with TestServer(self.app()) as server:
            options = {
                "app_id": "cli_test",
                "app_secret": "s3cr3t",
                "auth_url": str(server.make_url("/auth")),
                "api_base": str(server.make_url("/open-apis")),
                "base_id": BASE_ID,
                "table_id": TABLE_ID,
                "timeout": 2.0,
            }
            options.update(overrides)
            yield LarkConfig(**options)


def _hod_items(*names):
    return [
        {"record_id": f"rec{i}", "fields": {"HOD": name}}
        for i, name in enumerate(names)
    ]


@pytest.fixture
def hod_items():
    """Build record items carrying only the HOD field."""
    return _hod_items


@pytest.fixture
def fake():
    return FakeLark()


@pytest.fixture
def clock():
    return FakeClock()
