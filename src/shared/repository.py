"""Shared repository base.

Repositories wrap one model and one session. They flush but never
commit: the caller's ``session_scope`` owns the transaction, which is
what lets an answer log insert and its state update land together.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.shared.database import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(ABC, Generic[ModelT]):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    @abstractmethod
    def _model_class(self) -> type[ModelT]:
        """Model this repository reads and writes."""

    async def get_by_id(self, id: UUID) -> ModelT | None:
        model = self._model_class
        result = await self._session.execute(select(model).where(model.id == id))
        return result.scalar_one_or_none()

    async def create(self, entity: ModelT) -> ModelT:
        """Add ``entity`` and flush.

        Unique constraint violations raise ``IntegrityError`` here, inside
        the caller's block, not at commit.
        """
        self._session.add(entity)
        await self._session.flush()
        return entity
