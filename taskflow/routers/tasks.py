from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..dependencies import get_store
from ..models import ReorderRequest, TaskCreate, TaskStats, TaskUpdate, TaskWithCategory
from ..query import ActiveFilter, SortKey, TaskFilter, ViewState, apply_view, compute_stats
from ..store import TaskStore

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=list[TaskWithCategory])
async def list_tasks(
    search: str = "",
    category: Optional[str] = None,
    active_filter: ActiveFilter = Query(ActiveFilter.ALL, alias="filter"),
    task_filter: TaskFilter = Query(TaskFilter.ALL, alias="taskFilter"),
    sort_by: SortKey = Query(SortKey.CREATED, alias="sortBy"),
    store: TaskStore = Depends(get_store),
):
    view = ViewState(
        search_query=search,
        active_category=category,
        active_filter=active_filter,
        task_filter=task_filter,
        sort_by=sort_by,
    )
    return apply_view(await store.list_tasks(), view)


@router.post("", response_model=TaskWithCategory, status_code=status.HTTP_201_CREATED)
async def create_task(task: TaskCreate, store: TaskStore = Depends(get_store)):
    return await store.create_task(task)


@router.get("/stats", response_model=TaskStats)
async def task_stats(store: TaskStore = Depends(get_store)):
    return compute_stats(await store.list_tasks())


@router.post("/reorder", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_tasks(body: ReorderRequest, store: TaskStore = Depends(get_store)):
    await store.reorder_tasks(body.task_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}", response_model=TaskWithCategory)
async def get_task(task_id: str, store: TaskStore = Depends(get_store)):
    task = await store.get_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.patch("/{task_id}", response_model=TaskWithCategory)
async def update_task(task_id: str, patch: TaskUpdate, store: TaskStore = Depends(get_store)):
    task = await store.update_task(task_id, patch)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.post("/{task_id}/toggle", response_model=TaskWithCategory)
async def toggle_task(task_id: str, store: TaskStore = Depends(get_store)):
    task = await store.toggle_task_complete(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.delete("/{task_id}")
async def delete_task(task_id: str, store: TaskStore = Depends(get_store)):
    if not await store.delete_task(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"ok": True}
