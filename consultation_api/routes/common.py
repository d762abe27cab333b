import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from consultation_api.database import ensure_appointment_schema, ensure_availability_schema
from consultation_api.services.booking import BookingConflictError, BookingError

logger = logging.getLogger(__name__)

SERVER_ERROR_DETAIL = 'Erreur serveur'


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        logger.exception('Database schema check failed. Verify DATABASE_URL.')
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=SERVER_ERROR_DETAIL,
        ) from exc


def store_failure(db: Session | None, action: str) -> HTTPException:
    """Roll back and log the active store error; call from an ``except`` block."""
    if db is not None:
        db.rollback()
    logger.exception('Error %s', action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=SERVER_ERROR_DETAIL,
    )


def booking_failure(exc: BookingError) -> HTTPException:
    if isinstance(exc, BookingConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
