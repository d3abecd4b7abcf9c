from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_store
from ..models import CategoryCreate, CategoryRead, CategoryUpdate
from ..store import TaskStore

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=list[CategoryRead])
async def list_categories(store: TaskStore = Depends(get_store)):
    return await store.list_categories()


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(category: CategoryCreate, store: TaskStore = Depends(get_store)):
    return await store.create_category(category)


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(category_id: str, store: TaskStore = Depends(get_store)):
    category = await store.get_category(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.patch("/{category_id}", response_model=CategoryRead)
async def update_category(category_id: str, patch: CategoryUpdate, store: TaskStore = Depends(get_store)):
    category = await store.update_category(category_id, patch)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.delete("/{category_id}")
async def delete_category(category_id: str, store: TaskStore = Depends(get_store)):
    if not await store.delete_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return {"ok": True}
