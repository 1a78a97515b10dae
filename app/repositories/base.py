from contextlib import contextmanager
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(operation: str):
    """Re-raise SQLAlchemy failures as StorageError. No retry is attempted."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Database error during {operation}: {e}")
        raise StorageError(
            f"Could not {operation}, please try again",
            details={"operation": operation},
        ) from e
