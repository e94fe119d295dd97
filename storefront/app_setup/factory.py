"""
Factory d'application pour les entrypoints (storefront.asgi, tests).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
import logging
import os
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import (
    register_basic_middlewares,
    register_security_middleware,
    register_no_cache_middleware,
    register_force_https_middleware,
)
from .exceptions import register_exception_handlers
from .routers import register_routers

def configure_logging() -> None:
    """Format unique pour les loggers `storefront.*` (niveau via LOG_LEVEL)."""
    level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base, sécurité, no-cache
      - gestionnaires d'exceptions
      - tous les routers (API, admin, health)
      - redirection HTTPS en dernier pour s'exécuter en premier
    """
    configure_logging()
    app = FastAPI(title="Lunatique Storefront API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app
