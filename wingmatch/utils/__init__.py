"""Utils package for the WingMatch engine."""

from wingmatch.utils.cache import delete_cache, get_cache, get_cache_models, set_cache
from wingmatch.utils.database import init_database, session_scope
from wingmatch.utils.errors import (
    ConfigurationError,
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    TransientError,
    ValidationError,
    WingMatchError,
)
from wingmatch.utils.logging import configure_logging, get_logger, log_error

__all__ = [
    "ConfigurationError",
    "ConflictError",
    "DatabaseError",
    "ForbiddenError",
    "NotFoundError",
    "TransientError",
    "ValidationError",
    "WingMatchError",
    "configure_logging",
    "delete_cache",
    "get_cache",
    "get_cache_models",
    "get_logger",
    "init_database",
    "log_error",
    "session_scope",
    "set_cache",
]
