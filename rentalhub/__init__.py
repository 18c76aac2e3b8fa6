"""Application factory and top-level wiring for the RentalHub API.

This module is the glue that brings together configuration, database setup,
middleware, API routers, and error handling. The goal is to give a new
developer a bird's-eye view of *what* pieces exist, *when* they are
initialised, *why* they are required, and *how* they interact to serve the
rental platform.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    DomainError,
    domain_error_handler,
    http_exception_handler,
    integrity_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware, SecurityHeadersMiddleware

# Importing the SQLAlchemy models registers them with the metadata. Without
# this step ``Base.metadata.create_all`` would not know about our tables.
from .models import user as _user  # noqa: F401
from .models import catalog as _catalog  # noqa: F401
from .models import accessory as _accessory  # noqa: F401
from .models import inventory as _inventory  # noqa: F401
from .models import equipment as _equipment  # noqa: F401
from .models import pricing as _pricing  # noqa: F401
from .models import rental as _rental  # noqa: F401
from .models import kb as _kb  # noqa: F401

from .routers import accessories, auth, catalog, equipment, inventory, kb, rentals, users


def init_database() -> None:
    """Create missing tables, then apply the additive migrations and seeds."""

    Base.metadata.create_all(bind=engine)
    run_migrations(engine)


def create_app(init_db: bool = True) -> FastAPI:
    """Build the FastAPI application.

    ``init_db=False`` skips schema creation so tests can point ``get_db`` at
    their own in-memory database.
    """

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

    if init_db:
        init_database()

    # ---------- Middleware ----------
    # Starlette runs the last-added middleware first, so the request id is
    # assigned before anything else logs.
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.APP_ENV == "production")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )
    app.add_middleware(RequestIdMiddleware)

    # ---------- Routers ----------
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(catalog.public_router)
    app.include_router(catalog.admin_router)
    app.include_router(accessories.public_router)
    app.include_router(accessories.admin_router)
    app.include_router(inventory.router)
    app.include_router(inventory.admin_router)
    app.include_router(equipment.router)
    app.include_router(rentals.router)
    app.include_router(rentals.modifiers_router)
    app.include_router(kb.router)

    # ---------- Exception handling ----------
    # Every failure leaves the API as ``{error, message, statusCode}``.
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    return app


__all__ = ["create_app", "init_database"]
