# backend/routes/categories.py
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db, commit_or_rollback
from models.category import Category
from models.users import User, ROLE_ADMIN, ROLE_CUSTOMER
from schemas.category import CategoryCreate, CategoryOut
from schemas.common import Envelope, MessageOut
from utils.audit import write_log, client_ip
from utils.errors import ConflictError, NotFoundError
from utils.tokenJWT import role_required

router = APIRouter(prefix="/categories", tags=["Categories"])


def _get_category(db: Session, category_id: UUID) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("category not found")
    return category


def _ensure_name_free(db: Session, name: str, exclude_id: UUID = None):
    q = db.query(Category.id).filter(Category.name == name)
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise ConflictError("category name already exists")


@router.post("", response_model=Envelope[CategoryOut], status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    name = payload.name.strip()
    _ensure_name_free(db, name)

    category = Category(name=name)
    db.add(category)
    try:
        commit_or_rollback(db, "creating category")
    except IntegrityError:
        raise ConflictError("category name already exists")
    db.refresh(category)

    write_log(db, user_id=current_user.id, action="CATEGORY_CREATE", resource="categories",
              ip=client_ip(request), meta={"category_id": str(category.id), "name": name})
    return {"data": category}


@router.get("", response_model=Envelope[List[CategoryOut]])
def list_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    return {"data": db.query(Category).order_by(Category.name.asc()).all()}


@router.get("/{category_id}", response_model=Envelope[CategoryOut])
def get_category(
    category_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    return {"data": _get_category(db, category_id)}


@router.put("/{category_id}", response_model=Envelope[CategoryOut])
def update_category(
    category_id: UUID,
    payload: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    category = _get_category(db, category_id)
    name = payload.name.strip()
    _ensure_name_free(db, name, exclude_id=category.id)

    old_name = category.name
    category.name = name
    try:
        commit_or_rollback(db, "updating category")
    except IntegrityError:
        raise ConflictError("category name already exists")
    db.refresh(category)

    write_log(db, user_id=current_user.id, action="CATEGORY_UPDATE", resource="categories",
              ip=client_ip(request), meta={"category_id": str(category.id), "old": old_name, "new": name})
    return {"data": category}


@router.delete("/{category_id}", response_model=Envelope[MessageOut])
def delete_category(
    category_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    category = _get_category(db, category_id)
    db.delete(category)
    try:
        commit_or_rollback(db, "deleting category")
    except IntegrityError:
        raise ConflictError("category still has books")

    write_log(db, user_id=current_user.id, action="CATEGORY_DELETE", resource="categories",
              ip=client_ip(request), meta={"category_id": str(category_id)})
    return {"data": {"message": "category deleted successfully"}}
