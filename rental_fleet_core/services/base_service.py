"""
Session handling shared by the fleet services.

A service either opens its own session from the process-wide
DatabaseManager or is handed one, in which case the caller owns it and the
service never closes it. Several services handed the same session take part
in one unit of work.
"""

from contextlib import contextmanager
from typing import Iterator, NoReturn, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import BaseError, ErrorCode, ServiceError
from ..utils.logger import ContextAwareLogger, get_logger
from ..utils.timeout import Deadline


class SessionManagedService:
    def __init__(
        self,
        logger: Optional[ContextAwareLogger] = None,
        session: Optional[Session] = None,
    ):
        self._owns_session = session is None
        self.session = self._open_session() if session is None else session
        self.logger = logger or get_logger()

    def _open_session(self) -> Session:
        from ..db.db_config import get_db_manager

        return get_db_manager().new_session()

    def _handle_service_exception(
        self, operation: str, exception: Exception, entity_id: Optional[str] = None
    ) -> NoReturn:
        """
        Re-raise ``exception`` as something callers can act on.

        Package errors pass through untouched. Store failures become a
        retryable DATABASE_ERROR whose message carries no store details;
        anything else becomes INTERNAL_ERROR. The original is kept as
        ``cause`` either way.
        """
        if isinstance(exception, BaseError):
            raise exception

        extra = {
            "operation": operation,
            "entity_id": entity_id,
            "error_type": type(exception).__name__,
        }

        if isinstance(exception, SQLAlchemyError):
            self.logger.error(f"Store failure during {operation}", extra=extra)
            raise ServiceError(
                f"The {operation.replace('_', ' ')} could not be completed. Please try again.",
                error_code=ErrorCode.DATABASE_ERROR,
                operation=operation,
                entity_id=entity_id,
                cause=exception,
                status_code=503,
            ) from exception

        self.logger.error(f"Unexpected failure during {operation}", extra=extra, exc_info=True)
        raise ServiceError(
            f"Unexpected error during {operation}",
            error_code=ErrorCode.INTERNAL_ERROR,
            operation=operation,
            entity_id=entity_id,
            cause=exception,
        ) from exception

    @contextmanager
    def transaction(self, deadline: Optional[Deadline] = None) -> Iterator[Session]:
        """
        Commit the block's work on success, roll it back on any exception.

        If ``deadline`` has run out by the time the block finishes, the work
        is rolled back and OperationTimeoutError raised instead of committing.
        """
        try:
            yield self.session
            if deadline is not None:
                deadline.check()
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def close(self):
        """Close the session, unless it was handed in."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.rollback()
        self.close()
