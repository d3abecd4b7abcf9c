from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .errors import NotFoundError, OperationFailure, TaskflowError, ValidationError
from .models import (
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    TaskCreate,
    TaskStats,
    TaskUpdate,
    TaskWithCategory,
)
from .query import ViewState
from .reorder import reordered_ids

logger = logging.getLogger(__name__)

_BULK_VERBS = {"completed": "complete", "deleted": "delete"}


@dataclass
class BulkResult:
    action: str
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def message(self) -> str:
        if self.ok:
            return f"{len(self.succeeded)} tasks {self.action}"
        return f"Failed to {_BULK_VERBS[self.action]} tasks. Please try again."


def _body(model: Any) -> dict:
    return model.model_dump(mode="json", by_alias=True, exclude_unset=True)


class TaskflowClient:
    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> TaskflowClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise OperationFailure(f"{method} {url} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"{method} {url}: not found")
        if response.status_code in (400, 422):
            raise ValidationError(f"{method} {url}: {response.text}")
        if response.is_error:
            raise OperationFailure(f"{method} {url}: HTTP {response.status_code}")
        return response

    # ---- tasks ----

    async def list_tasks(self, view: Optional[ViewState] = None) -> list[TaskWithCategory]:
        params: dict[str, str] = {}
        if view is not None:
            if view.search_query:
                params["search"] = view.search_query
            if view.active_category:
                params["category"] = view.active_category
            params["filter"] = view.active_filter.value
            params["taskFilter"] = view.task_filter.value
            params["sortBy"] = view.sort_by.value
        response = await self._request("GET", "/api/tasks", params=params)
        return [TaskWithCategory.model_validate(item) for item in response.json()]

    async def get_task(self, task_id: str) -> TaskWithCategory:
        response = await self._request("GET", f"/api/tasks/{task_id}")
        return TaskWithCategory.model_validate(response.json())

    async def task_stats(self) -> TaskStats:
        response = await self._request("GET", "/api/tasks/stats")
        return TaskStats.model_validate(response.json())

    async def create_task(self, task: TaskCreate) -> TaskWithCategory:
        response = await self._request("POST", "/api/tasks", json=_body(task))
        return TaskWithCategory.model_validate(response.json())

    async def update_task(self, task_id: str, patch: TaskUpdate) -> TaskWithCategory:
        response = await self._request("PATCH", f"/api/tasks/{task_id}", json=_body(patch))
        return TaskWithCategory.model_validate(response.json())

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}")

    async def toggle_task(self, task_id: str) -> TaskWithCategory:
        response = await self._request("POST", f"/api/tasks/{task_id}/toggle")
        return TaskWithCategory.model_validate(response.json())

    async def reorder_tasks(self, task_ids: Sequence[str]) -> None:
        await self._request("POST", "/api/tasks/reorder", json={"taskIds": list(task_ids)})

    async def reorder_view(
        self, displayed: Sequence[TaskWithCategory], source_index: int, target_index: int
    ) -> Optional[list[str]]:
        """Move one displayed task and persist the displayed order. Returns the submitted ids."""
        if source_index == target_index:
            return None
        task_ids = reordered_ids(displayed, source_index, target_index)
        await self.reorder_tasks(task_ids)
        return task_ids

    # ---- bulk ----

    async def _bulk(self, action: str, task_ids: Iterable[str], call) -> BulkResult:
        task_ids = list(dict.fromkeys(task_ids))
        outcomes = await asyncio.gather(*(call(i) for i in task_ids), return_exceptions=True)

        result = BulkResult(action=action)
        for task_id, outcome in zip(task_ids, outcomes):
            if isinstance(outcome, TaskflowError):
                logger.warning("Bulk %s failed for task %s: %s", action, task_id, outcome)
                result.failed.append(task_id)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.succeeded.append(task_id)
        return result

    async def bulk_toggle(self, task_ids: Iterable[str]) -> BulkResult:
        """Toggle every selected task (the UI's "complete selected")."""
        return await self._bulk("completed", task_ids, self.toggle_task)

    async def bulk_delete(self, task_ids: Iterable[str]) -> BulkResult:
        return await self._bulk("deleted", task_ids, self.delete_task)

    # ---- categories ----

    async def list_categories(self) -> list[CategoryRead]:
        response = await self._request("GET", "/api/categories")
        return [CategoryRead.model_validate(item) for item in response.json()]

    async def create_category(self, category: CategoryCreate) -> CategoryRead:
        response = await self._request("POST", "/api/categories", json=_body(category))
        return CategoryRead.model_validate(response.json())

    async def update_category(self, category_id: str, patch: CategoryUpdate) -> CategoryRead:
        response = await self._request("PATCH", f"/api/categories/{category_id}", json=_body(patch))
        return CategoryRead.model_validate(response.json())

    async def delete_category(self, category_id: str) -> None:
        await self._request("DELETE", f"/api/categories/{category_id}")
