"""User-facing failure messages and storage error translation.

Each failure kind has exactly one status code and, where the kind is
generic, one message. Services raise these as ``HTTPException`` so that
routers never need to catch anything.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.engine import Result
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.sql import Executable
from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "User not authenticated"
NOT_PERMITTED = "You do not have permission to perform this action"
DUPLICATE_TEMPLATE_NAME = "A template with this name already exists"
STORAGE_UNAVAILABLE = "The request could not be saved. Please try again."
AI_UNAVAILABLE = "Failed to generate milestones. Please try again."
AI_NOT_CONFIGURED = "AI service not configured"
MILESTONES_UNPARSEABLE = (
    "Could not parse milestones from the AI response. "
    "Try again or add milestones manually."
)
NO_TEMPLATE_FOR_EVENT = "This event wasn't created from a template, so there's nothing to update"
NO_CHANGES_SELECTED = "Select at least one change to apply"
CONCURRENT_TEMPLATE_UPDATE = "This template was updated by someone else. Reload and try again."
NO_MILESTONE_CHANGES = "The milestones are unchanged, so there is no new version to save"


def not_authenticated() -> HTTPException:
    return HTTPException(status_code=401, detail=NOT_AUTHENTICATED)


def not_permitted() -> HTTPException:
    return HTTPException(status_code=403, detail=NOT_PERMITTED)


def not_found(thing: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{thing} not found")


def validation_failed(message: str) -> HTTPException:
    return HTTPException(status_code=422, detail=message)


def conflict(message: str) -> HTTPException:
    return HTTPException(status_code=409, detail=message)


def is_duplicate_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return "duplicate" in message or "unique" in message


async def commit_or_raise(
    session: AsyncSession,
    *,
    duplicate_message: str = DUPLICATE_TEMPLATE_NAME,
) -> None:
    """Commit the pending unit of work, or roll all of it back.

    Uniqueness violations become a 409 with ``duplicate_message``; any other
    storage failure is reported as retryable.
    """
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_duplicate_error(exc):
            raise conflict(duplicate_message) from exc
        logger.error("Integrity error while saving: %s", exc)
        raise HTTPException(status_code=503, detail=STORAGE_UNAVAILABLE) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Storage failure while saving")
        raise HTTPException(status_code=503, detail=STORAGE_UNAVAILABLE) from exc


async def execute_or_raise(session: AsyncSession, statement: Executable) -> Result:
    """Run a write statement inside the current unit of work.

    A storage failure rolls the unit of work back and is reported as retryable.
    """
    try:
        return await session.execute(statement)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Storage failure while writing")
        raise HTTPException(status_code=503, detail=STORAGE_UNAVAILABLE) from exc
