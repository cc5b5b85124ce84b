"""
Base Repository

Generic persistence operations over a single SQLAlchemy model.
Repositories flush but never commit on their own; the caller decides when a
unit of work is complete.
"""

from typing import Any, Optional, Type

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Base

logger = structlog.get_logger()


class BaseRepository:
    """
    Base repository for one model type.

    Each repository subclass specifies its model type directly.
    """

    def __init__(self, session: AsyncSession, model: Type[Base]):
        """
        Initialize repository with strict input validation.

        Raises:
            TypeError: If session is not AsyncSession or model is invalid
        """
        if not isinstance(session, AsyncSession):
            raise TypeError(
                f"session must be AsyncSession instance, got {type(session).__name__}"
            )

        if not model or not hasattr(model, "__tablename__"):
            raise TypeError(
                f"model must be valid SQLAlchemy model with __tablename__, got {type(model).__name__}"
            )

        self.session = session
        self.model = model

    async def find_by_id(self, id: Any) -> Optional[Base]:
        """Get entity by primary key."""
        if id is None:
            raise ValueError("Entity id is required (cannot be None)")

        try:
            entity = await self.session.get(self.model, id)
            if entity:
                logger.debug(
                    "Repository: Entity retrieved",
                    model=self.model.__name__,
                    entity_id=str(id),
                )
            return entity

        except Exception as e:
            logger.error(
                "Repository: Failed to get entity",
                model=self.model.__name__,
                entity_id=str(id),
                error=str(e),
                exc_info=True,
            )
            raise

    async def add(self, obj: Base) -> Base:
        """Stage a new entity and flush it to obtain generated values."""
        if obj is None:
            raise ValueError("Entity object is required (cannot be None)")

        try:
            self.session.add(obj)
            await self.session.flush()
            await self.session.refresh(obj)

            logger.info(
                "Repository: Entity created",
                model=self.model.__name__,
                entity_id=str(obj.id),
            )
            return obj

        except Exception as e:
            logger.error(
                "Repository: Failed to create entity",
                model=self.model.__name__,
                error=str(e),
                exc_info=True,
            )
            raise

    async def update(self, obj: Base) -> Base:
        """Flush pending changes of a loaded entity."""
        if obj is None or getattr(obj, "id", None) is None:
            raise ValueError("Entity must have id set (cannot be None)")

        try:
            await self.session.flush()
            await self.session.refresh(obj)

            logger.info(
                "Repository: Entity updated",
                model=self.model.__name__,
                entity_id=str(obj.id),
            )
            return obj

        except Exception as e:
            logger.error(
                "Repository: Failed to update entity",
                model=self.model.__name__,
                entity_id=str(obj.id),
                error=str(e),
                exc_info=True,
            )
            raise

    async def remove(self, obj: Base) -> None:
        """Delete a loaded entity."""
        await self.session.delete(obj)
        await self.session.flush()
        logger.info(
            "Repository: Entity deleted",
            model=self.model.__name__,
            entity_id=str(obj.id),
        )

    async def commit(self) -> None:
        """Commit the unit of work."""
        await self.session.commit()
