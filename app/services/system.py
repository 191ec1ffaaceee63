import logging
import os
import platform
import socket
import sys
import time
from datetime import datetime, timezone

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.docman import Book, Category, Document, Project, Team
from app.models.user import User
from app.services.cache import cache

logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()

COUNTED_TABLES = {
    "users": User,
    "documents": Document,
    "categories": Category,
    "books": Book,
    "teams": Team,
    "projects": Project,
}


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{days}d {hours}h {minutes}m {seconds}s"


def _database_status(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        return "Disconnected"
    return "Connected"


def system_info(db: Session) -> dict:
    bind = db.get_bind()
    counts = {
        name: db.scalar(select(func.count()).select_from(model)) or 0
        for name, model in COUNTED_TABLES.items()
    }
    return {
        "environment": settings.environment,
        "python_version": platform.python_version(),
        "platform": sys.platform,
        "os": f"{platform.system()} {platform.release()}",
        "architecture": platform.machine(),
        "hostname": socket.gethostname(),
        "pid": os.getpid(),
        "uptime": format_uptime(time.monotonic() - _STARTED_AT),
        "database": {
            "dialect": bind.dialect.name,
            "status": _database_status(db),
            "counts": counts,
        },
        "app": {
            "name": "DocMan",
            "version": settings.app_version,
            "frontend_url": settings.frontend_url,
            "storage": "s3" if settings.s3_endpoint_url else "local",
        },
        "cache": cache.stats(),
        "checked_at": datetime.now(timezone.utc).isoformat(),
    }
