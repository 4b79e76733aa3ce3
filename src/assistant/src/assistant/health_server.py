from aiohttp import web
from loguru import logger
from assistant import settings as assistant_settings
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from typing import Optional

import time


class HealthServerMixin:
    health_app_runner: Optional[web.AppRunner] = None
    health_site: Optional[web.TCPSite] = None

    def health_status(self) -> dict:
        return {"status": "healthy", "timestamp": time.time()}

    def _build_health_app(self) -> web.Application:
        app = web.Application()

        async def health_handler(request):
            return web.json_response(self.health_status())

        async def metrics_handler(request):
            return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})

        app.router.add_get(assistant_settings.ASSISTANT_HEALTH_ENDPOINT, health_handler)
        app.router.add_get(assistant_settings.ASSISTANT_METRICS_ENDPOINT, metrics_handler)
        return app

    async def _start_health_server(self):
        """Starts the aiohttp web server for healthchecks and metrics."""
        self.health_app_runner = web.AppRunner(self._build_health_app())
        await self.health_app_runner.setup()

        self.health_site = web.TCPSite(
            self.health_app_runner, assistant_settings.ASSISTANT_HEALTH_HOST, assistant_settings.ASSISTANT_HEALTH_PORT
        )
        await self.health_site.start()
        logger.info(
            f"Assistant healthcheck API started on "
            f"http://{assistant_settings.ASSISTANT_HEALTH_HOST}:{assistant_settings.ASSISTANT_HEALTH_PORT}"
            f"{assistant_settings.ASSISTANT_HEALTH_ENDPOINT}"
        )

    async def _stop_health_server(self):
        """Stops the aiohttp web server for healthchecks."""
        if self.health_site:
            await self.health_site.stop()
            logger.info("Assistant healthcheck API site stopped.")
            self.health_site = None
        if self.health_app_runner:
            await self.health_app_runner.cleanup()
            logger.info("Assistant healthcheck API runner cleaned up.")
            self.health_app_runner = None
