# (c) Copyright Datacraft, 2026
"""Discovery of feature routers."""
import importlib
import importlib.util
import logging
import pkgutil

from fastapi import APIRouter

logger = logging.getLogger(__name__)

FEATURES_PACKAGE = "docintegrity.core.features"


def discover_routers(package: str = FEATURES_PACKAGE) -> list[tuple[APIRouter, str]]:
	"""
	Import ``<feature>.router`` for every feature package that has one.

	Returns:
		List of (router, feature_name), sorted by feature name
	"""
	features = importlib.import_module(package)
	routers = []
	for module_info in sorted(pkgutil.iter_modules(features.__path__), key=lambda m: m.name):
		if not module_info.ispkg:
			continue
		name = f"{package}.{module_info.name}.router"
		if importlib.util.find_spec(name) is None:
			continue
		module = importlib.import_module(name)
		router = getattr(module, "router", None)
		if isinstance(router, APIRouter):
			routers.append((router, module_info.name))
			logger.debug(f"Registered router for feature {module_info.name}")
	return routers
