"""aiohttp adapter for the option-list callbacks.

Routes:
    GET  /               health check
    POST /get_{column}   option list for a configured column
"""
import os
import logging

import orjson
from aiohttp import web

from .conf import LarkConfig, EnvelopeConfig
from .exceptions import OptionsError, ValidationFailure
from .options import (
    OptionService,
    failure_body,
    parameter_error_body,
    verify_token,
)

logger = logging.getLogger("lark_options.handlers")

SERVICE_KEY = web.AppKey("option_service", OptionService)
TOKEN_HEADER = "X-Verify-Token"


def _json(payload: bytes, status: int = 200) -> web.Response:
    return web.Response(
        body=payload, status=status, content_type="application/json"
    )


async def _read_body(request: web.Request) -> dict:
    try:
        body = await request.json(loads=orjson.loads)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def health(request: web.Request) -> web.Response:
    return web.Response(text="Lark API server is running!")


async def option_list(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    slug = request.match_info["column"]
    try:
        target = service.column(slug)
    except ValidationFailure:
        raise web.HTTPNotFound()

    body = await _read_body(request)
    presented = body.get("token") or request.headers.get(TOKEN_HEADER)
    if not verify_token(presented, service.envelope.verify_token):
        logger.warning("Rejected /get_%s: invalid verification token", slug)
        return _json(orjson.dumps(failure_body()), status=401)

    department = None
    if target != service.lark.filter_field:
        linkage = body.get("linkage_params")
        department = linkage.get("department") if isinstance(linkage, dict) else None

    try:
        try:
            if target != service.lark.filter_field and not department:
                raise ValidationFailure("linkage_params.department is required")
            result = await service.option_list(target, department)
        except ValidationFailure as err:
            logger.warning("Invalid parameters for /get_%s: %s", slug, err)
            result = parameter_error_body()
        return _json(service.render(result))
    except OptionsError as err:
        logger.error("Error in /get_%s: %s", slug, err)
        return _json(orjson.dumps(failure_body()), status=500)


async def _close_service(app: web.Application) -> None:
    await app[SERVICE_KEY].close()


def create_app(service: OptionService = None) -> web.Application:
    """Build the aiohttp application around one shared OptionService."""
    if service is None:
        service = OptionService(LarkConfig.from_env(), EnvelopeConfig.from_env())
    app = web.Application()
    app[SERVICE_KEY] = service
    app.router.add_get("/", health)
    app.router.add_post("/get_{column}", option_list)
    app.on_cleanup.append(_close_service)
    return app


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    web.run_app(create_app(), port=int(os.environ.get("PORT", "3000")))


if __name__ == "__main__":
    main()
