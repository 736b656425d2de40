from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from auth.utils import get_current_user
from db.models import Category
from services.habit_store import HabitStore, get_store

router = APIRouter(prefix="/categories", tags=["categories"], dependencies=[Depends(get_current_user)])

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


def _category_to_dict(category: Category) -> dict:
    return {"id": category.id, "name": category.name, "color": category.color}


@router.get("")
def list_categories(store: HabitStore = Depends(get_store)):
    return [_category_to_dict(c) for c in store.list_categories()]


@router.post("", status_code=201)
def create_category(req: CategoryCreateRequest, store: HabitStore = Depends(get_store)):
    if store.get_category_by_name(req.name.strip()):
        raise HTTPException(status_code=409, detail="Category name already exists")
    return _category_to_dict(store.create_category(req.name, req.color))


@router.put("/{category_id}")
def update_category(category_id: int, req: CategoryUpdateRequest, store: HabitStore = Depends(get_store)):
    if req.name is not None:
        existing = store.get_category_by_name(req.name.strip())
        if existing and existing.id != category_id:
            raise HTTPException(status_code=409, detail="Category name already exists")
    category = store.update_category(
        category_id,
        name=req.name.strip() if req.name is not None else None,
        color=req.color,
    )
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return _category_to_dict(category)


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, store: HabitStore = Depends(get_store)):
    if not store.get_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    if store.category_in_use(category_id):
        raise HTTPException(status_code=409, detail="Category is still used by one or more habits")
    store.delete_category(category_id)
    return Response(status_code=204)
