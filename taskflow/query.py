from __future__ import annotations

import locale
import unicodedata
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from .models import ApiModel, Priority, TaskStats, TaskWithCategory


class ActiveFilter(str, Enum):
    ALL = "all"
    TODAY = "today"
    UPCOMING = "upcoming"
    COMPLETED = "completed"


class TaskFilter(str, Enum):
    ALL = "all"
    PENDING = "pending"
    OVERDUE = "overdue"
    HIGH_PRIORITY = "high-priority"


class SortKey(str, Enum):
    CREATED = "created"
    TITLE = "title"
    PRIORITY = "priority"
    DUE_DATE = "dueDate"
    COMPLETED = "completed"


class ViewState(ApiModel):
    search_query: str = ""
    active_category: Optional[str] = None
    active_filter: ActiveFilter = ActiveFilter.ALL
    task_filter: TaskFilter = TaskFilter.ALL
    sort_by: SortKey = SortKey.CREATED


def _local(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _due(task: TaskWithCategory) -> Optional[datetime]:
    return _local(task.due_date) if task.due_date is not None else None


def _today(now: datetime) -> date:
    return _local(now).date()


def is_due_today(task: TaskWithCategory, now: datetime) -> bool:
    due = _due(task)
    return due is not None and due.date() == _today(now)


def is_due_tomorrow(task: TaskWithCategory, now: datetime) -> bool:
    due = _due(task)
    return due is not None and due.date() == _today(now) + timedelta(days=1)


def is_overdue(task: TaskWithCategory, now: datetime) -> bool:
    due = _due(task)
    return not task.completed and due is not None and due < _local(now)


# ---- predicates ----


def matches_search(task: TaskWithCategory, query: str) -> bool:
    if not query:
        return True
    needle = query.lower()
    if needle in task.title.lower():
        return True
    return task.description is not None and needle in task.description.lower()


def matches_category(task: TaskWithCategory, category_id: Optional[str]) -> bool:
    return category_id is None or task.category_id == category_id


def matches_active_filter(task: TaskWithCategory, active_filter: ActiveFilter, now: datetime) -> bool:
    if active_filter == ActiveFilter.TODAY:
        return not task.completed and is_due_today(task, now)
    if active_filter == ActiveFilter.UPCOMING:
        due = _due(task)
        if task.completed or due is None:
            return False
        return is_due_tomorrow(task, now) or (due > _local(now) and not is_due_today(task, now))
    if active_filter == ActiveFilter.COMPLETED:
        return task.completed
    return True


def matches_task_filter(task: TaskWithCategory, task_filter: TaskFilter, now: datetime) -> bool:
    if task_filter == TaskFilter.PENDING:
        return not task.completed
    if task_filter == TaskFilter.OVERDUE:
        return is_overdue(task, now)
    if task_filter == TaskFilter.HIGH_PRIORITY:
        return task.priority == Priority.HIGH
    return True


def predicates(view: ViewState, now: datetime) -> list[Callable[[TaskWithCategory], bool]]:
    return [
        lambda t: matches_search(t, view.search_query),
        lambda t: matches_category(t, view.active_category),
        lambda t: matches_active_filter(t, view.active_filter, now),
        lambda t: matches_task_filter(t, view.task_filter, now),
    ]


def filter_tasks(
    tasks: Iterable[TaskWithCategory], view: ViewState, now: Optional[datetime] = None
) -> list[TaskWithCategory]:
    checks = predicates(view, now or datetime.now())
    return [t for t in tasks if all(check(t) for check in checks)]


# ---- sorting ----


def _fold(text: str, keep_accents: bool) -> str:
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    if keep_accents:
        return decomposed
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def collation_key(text: str) -> tuple[str, str, str]:
    # Base letters under the process locale, then accents, then case (lowercase first).
    return (locale.strxfrm(_fold(text, False)), _fold(text, True), text.swapcase())


def _title_key(task: TaskWithCategory):
    return collation_key(task.title)


def _priority_key(task: TaskWithCategory):
    return -task.priority.rank


def _due_key(task: TaskWithCategory):
    due = _due(task)
    # Undated tasks go last and compare equal among themselves.
    return (1, datetime.min) if due is None else (0, due)


def _completed_key(task: TaskWithCategory):
    return task.completed


def _position_key(task: TaskWithCategory):
    return task.position


_SORT_KEYS = {
    SortKey.CREATED: _position_key,
    SortKey.TITLE: _title_key,
    SortKey.PRIORITY: _priority_key,
    SortKey.DUE_DATE: _due_key,
    SortKey.COMPLETED: _completed_key,
}


def sort_tasks(tasks: Iterable[TaskWithCategory], sort_by: SortKey = SortKey.CREATED) -> list[TaskWithCategory]:
    return sorted(tasks, key=_SORT_KEYS[sort_by])


def apply_view(
    tasks: Iterable[TaskWithCategory], view: ViewState, now: Optional[datetime] = None
) -> list[TaskWithCategory]:
    return sort_tasks(filter_tasks(tasks, view, now), view.sort_by)


# ---- sidebar figures ----


def compute_stats(tasks: Iterable[TaskWithCategory], now: Optional[datetime] = None) -> TaskStats:
    now = now or datetime.now()
    tasks = list(tasks)
    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)

    filters = {
        f.value: sum(1 for t in tasks if matches_active_filter(t, f, now)) for f in ActiveFilter
    }
    categories: dict[str, int] = {}
    for t in tasks:
        if t.category_id is not None:
            categories[t.category_id] = categories.get(t.category_id, 0) + 1

    progress = (completed * 100 + total // 2) // total if total else 0
    return TaskStats(
        total=total,
        completed=completed,
        progress=progress,
        filters=filters,
        categories=categories,
    )


def due_label(task: TaskWithCategory, now: Optional[datetime] = None) -> Optional[str]:
    due = _due(task)
    if due is None:
        return None
    now = now or datetime.now()
    if is_due_today(task, now):
        return "Today"
    if is_due_tomorrow(task, now):
        return "Tomorrow"
    text = f"{due:%b} {due.day}"
    if due < _local(now):
        return f"Overdue ({text})"
    return text
