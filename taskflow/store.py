from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from .errors import OperationFailure, ValidationError
from .models import (
    Category,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    Task,
    TaskCreate,
    TaskUpdate,
    TaskWithCategory,
)
from .query import collation_key

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = (
    ("work", "Work", "#3b82f6"),
    ("personal", "Personal", "#10b981"),
    ("shopping", "Shopping", "#f59e0b"),
)


def _new_id() -> str:
    return str(uuid.uuid4())


def category_sort_key(category: Category | CategoryRead) -> tuple[str, str, str]:
    return collation_key(category.name)


class TaskStore:
    """Each public method holds the lock and one session, and commits at most once."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._lock:
            async with self._session_factory() as session:
                try:
                    yield session
                except SQLAlchemyError as e:
                    logger.exception("Store operation failed")
                    raise OperationFailure(str(e)) from e

    # ---- helpers ----

    @staticmethod
    async def _check_category(session: AsyncSession, category_id: Optional[str]) -> None:
        if category_id is None:
            return
        if await session.get(Category, category_id) is None:
            raise ValidationError(f"Unknown category id: {category_id}")

    @staticmethod
    async def _category_map(session: AsyncSession) -> dict[str, Category]:
        result = await session.execute(select(Category))
        return {c.id: c for c in result.scalars().all()}

    @staticmethod
    def _join(task: Task, categories: dict[str, Category]) -> TaskWithCategory:
        category = categories.get(task.category_id) if task.category_id else None
        data = task.model_dump()
        # A reference to a category that no longer exists reads as no category.
        data["category_id"] = category.id if category else None
        data["category"] = CategoryRead(**category.model_dump()) if category else None
        return TaskWithCategory(**data)

    async def _join_one(self, session: AsyncSession, task: Task) -> TaskWithCategory:
        categories: dict[str, Category] = {}
        if task.category_id:
            category = await session.get(Category, task.category_id)
            if category is not None:
                categories[category.id] = category
        return self._join(task, categories)

    # ---- tasks ----

    async def list_tasks(self) -> list[TaskWithCategory]:
        async with self._session() as session:
            result = await session.execute(select(Task).order_by(Task.position, Task.created_at))
            tasks: Sequence[Task] = result.scalars().all()
            categories = await self._category_map(session)
        return [self._join(t, categories) for t in tasks]

    async def get_task(self, task_id: str) -> Optional[TaskWithCategory]:
        async with self._session() as session:
            task = await session.get(Task, task_id)
            if task is None:
                return None
            return await self._join_one(session, task)

    async def create_task(self, data: TaskCreate) -> TaskWithCategory:
        async with self._session() as session:
            await self._check_category(session, data.category_id)

            position = data.position
            if position is None:
                result = await session.execute(select(func.max(Task.position)))
                position = max(result.scalar() or 0, 0) + 1

            now = datetime.now()
            task = Task(
                **data.model_dump(exclude={"position"}),
                id=_new_id(),
                position=position,
                created_at=now,
                updated_at=now,
            )
            session.add(task)
            await session.commit()
            await session.refresh(task)
            logger.info("Task created id=%s position=%s", task.id, task.position)
            return await self._join_one(session, task)

    async def update_task(self, task_id: str, patch: TaskUpdate) -> Optional[TaskWithCategory]:
        async with self._session() as session:
            task = await session.get(Task, task_id)
            if task is None:
                return None
            changes = patch.changes()
            if "category_id" in changes:
                await self._check_category(session, changes["category_id"])
            for key, value in changes.items():
                setattr(task, key, value)
            task.updated_at = datetime.now()
            session.add(task)
            await session.commit()
            await session.refresh(task)
            logger.debug("Task updated id=%s fields=%s", task_id, sorted(changes))
            return await self._join_one(session, task)

    async def delete_task(self, task_id: str) -> bool:
        async with self._session() as session:
            task = await session.get(Task, task_id)
            if task is None:
                return False
            await session.delete(task)
            await session.commit()
            logger.info("Task deleted id=%s", task_id)
            return True

    async def toggle_task_complete(self, task_id: str) -> Optional[TaskWithCategory]:
        async with self._session() as session:
            task = await session.get(Task, task_id)
            if task is None:
                return None
            task.completed = not task.completed
            task.updated_at = datetime.now()
            session.add(task)
            await session.commit()
            await session.refresh(task)
            return await self._join_one(session, task)

    async def reorder_tasks(self, task_ids: Sequence[str]) -> None:
        """
        Set each listed task's position to its index in ``task_ids``.

        Unknown ids are skipped. Tasks that are not listed keep their old
        position, which may now equal a rewritten one.
        """
        async with self._session() as session:
            now = datetime.now()
            skipped = 0
            for index, task_id in enumerate(task_ids):
                task = await session.get(Task, task_id)
                if task is None:
                    skipped += 1
                    continue
                task.position = index
                task.updated_at = now
                session.add(task)
            await session.commit()
        logger.debug("Tasks reordered count=%s skipped=%s", len(task_ids), skipped)

    # ---- categories ----

    async def list_categories(self) -> list[CategoryRead]:
        async with self._session() as session:
            result = await session.execute(select(Category))
            categories = sorted(result.scalars().all(), key=category_sort_key)
        return [CategoryRead(**c.model_dump()) for c in categories]

    async def get_category(self, category_id: str) -> Optional[CategoryRead]:
        async with self._session() as session:
            category = await session.get(Category, category_id)
        if category is None:
            return None
        return CategoryRead(**category.model_dump())

    async def create_category(self, data: CategoryCreate) -> CategoryRead:
        async with self._session() as session:
            category = Category(**data.model_dump(), id=_new_id(), created_at=datetime.now())
            session.add(category)
            await session.commit()
            await session.refresh(category)
        logger.info("Category created id=%s name=%r", category.id, category.name)
        return CategoryRead(**category.model_dump())

    async def update_category(self, category_id: str, patch: CategoryUpdate) -> Optional[CategoryRead]:
        async with self._session() as session:
            category = await session.get(Category, category_id)
            if category is None:
                return None
            for key, value in patch.changes().items():
                setattr(category, key, value)
            session.add(category)
            await session.commit()
            await session.refresh(category)
        return CategoryRead(**category.model_dump())

    async def delete_category(self, category_id: str) -> bool:
        """Detach every task from the category, then delete it."""
        async with self._session() as session:
            category = await session.get(Category, category_id)
            if category is None:
                return False
            result = await session.execute(
                update(Task).where(Task.category_id == category_id).values(category_id=None)
            )
            await session.delete(category)
            await session.commit()
        logger.info("Category deleted id=%s detached_tasks=%s", category_id, result.rowcount)
        return True

    async def seed_default_categories(self) -> int:
        added = 0
        async with self._session() as session:
            for category_id, name, color in DEFAULT_CATEGORIES:
                if await session.get(Category, category_id) is not None:
                    continue
                session.add(Category(id=category_id, name=name, color=color, created_at=datetime.now()))
                added += 1
            await session.commit()
        if added:
            logger.info("Seeded %s default categories", added)
        return added
