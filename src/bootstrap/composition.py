"""
Composition Root
================

The single place where the process object graph is assembled.

Registration order is construction order:
1. auditing - auditing handler and its SQLAlchemy registration
2. database - engine and session factory on the audited session class
3. web      - FastAPI application

Components are closed in reverse order on shutdown.
"""

from typing import Optional, Sequence

from sqlalchemy.orm import Session

from src.auditing.application import AuditingHandler
from src.auditing.infrastructure import (
    AuditingRegistration,
    ContextAuditorProvider,
    SystemDateTimeProvider,
)
from src.bootstrap.context import ContextBuilder
from src.config import Settings
from src.infrastructure.database import Database
from src.interfaces import create_app
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

AUDITING = "auditing"
DATABASE = "database"
WEB = "web"


def build_auditing(resolver: ContextBuilder) -> Optional[AuditingRegistration]:
    settings = resolver.settings
    if not settings.auditing_enabled:
        logger.info("Auditing disabled by configuration")
        return None

    handler = AuditingHandler(
        date_time_provider=SystemDateTimeProvider(),
        auditor_provider=ContextAuditorProvider(fallback=settings.system_actor),
        set_dates=settings.auditing_set_dates,
        modify_on_create=settings.auditing_modify_on_create,
    )
    registration = AuditingRegistration(handler)
    registration.enable()
    return registration


def close_auditing(registration: Optional[AuditingRegistration]) -> None:
    if registration is not None:
        registration.disable()


async def build_database(resolver: ContextBuilder) -> Database:
    settings = resolver.settings
    auditing: Optional[AuditingRegistration] = resolver.get(AUDITING)
    session_class = auditing.session_class if auditing is not None else Session

    database = Database(settings, session_class=session_class)
    database.connect()
    try:
        if settings.db_create_tables:
            logger.info("Creating database tables")
            await database.create_tables()
        elif settings.db_verify_on_startup:
            logger.info("Verifying database connectivity")
            await database.verify()
    except Exception:
        await database.dispose()
        raise
    return database


async def close_database(database: Database) -> None:
    await database.dispose()


def build_web(resolver: ContextBuilder):
    return create_app(
        resolver.settings,
        database=resolver.get(DATABASE),
        auditing=resolver.get(AUDITING),
    )


def compose(settings: Settings, args: Sequence[str] = ()) -> ContextBuilder:
    """
    Register every component of the service.

    Args:
        settings: Loaded settings
        args: Process arguments, passed through unvalidated

    Returns:
        ContextBuilder: Builder ready for ``build()``
    """
    return (
        ContextBuilder(settings, args)
        .register(AUDITING, build_auditing, close=close_auditing)
        .register(DATABASE, build_database, close=close_database)
        .register(WEB, build_web)
    )
