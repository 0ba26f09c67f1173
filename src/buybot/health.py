"""
Liveness endpoint for the process supervisor
"""

from aiohttp import web
import structlog

log = structlog.get_logger()


def create_health_app(name: str) -> web.Application:
    """Any method, any path -> 200 '<name> alive'"""
    body = f"{name} alive\n"

    async def alive_handler(request: web.Request) -> web.Response:
        return web.Response(text=body, content_type="text/plain")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", alive_handler)
    return app


async def start_health_server(name: str, port: int, host: str = "0.0.0.0") -> web.AppRunner:
    runner = web.AppRunner(create_health_app(name), access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    log.info("health_server_listening", host=host, port=port)
    return runner
