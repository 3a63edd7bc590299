# (c) Copyright Datacraft, 2026
import logging
from contextlib import asynccontextmanager
from logging.config import dictConfig
from pathlib import Path

import yaml
from fastapi import FastAPI

from docintegrity.core.config import Settings, get_settings
from docintegrity.core.container import Container
from docintegrity.core.db.engine import create_all
from docintegrity.core.router_loader import discover_routers
from docintegrity.core.routers.errors import register_exception_handlers
from docintegrity.core.version import __version__

logger = logging.getLogger(__name__)


def configure_logging(log_config: Path | None) -> None:
	if log_config is None or not log_config.is_file():
		return
	with open(log_config, "r") as stream:
		config = yaml.safe_load(stream)
	dictConfig(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
	"""Build the engine on startup; stop background work on shutdown."""
	settings: Settings = app.state.settings
	logger.info("Starting document integrity service...")

	owned = getattr(app.state, "container", None) is None
	if owned:
		app.state.container = Container.build(settings)
	container: Container = app.state.container

	await create_all(container.engine)
	if settings.retry_sweep_enabled:
		container.scheduler.start()

	yield

	logger.info("Shutting down document integrity service...")
	if owned:
		await container.close()
	elif container.scheduler.running:
		await container.scheduler.stop()


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
	settings = settings or (container.settings if container else get_settings())
	configure_logging(settings.log_config)

	app = FastAPI(
		title="Document Integrity & Recovery API",
		version=__version__,
		lifespan=lifespan,
	)
	app.state.settings = settings
	if container is not None:
		app.state.container = container

	register_exception_handlers(app)
	for router, feature_name in discover_routers():
		app.include_router(router, prefix=settings.api_prefix)

	return app


app = create_app()
