# backend/routes/users.py
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional, Literal

from database import get_db, commit_or_rollback
from models.users import User, ROLE_ADMIN
from schemas.common import Envelope, MessageOut
from schemas.user import UserResponse, UsersPage
from utils.audit import write_log, client_ip
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.tokenJWT import role_required

router = APIRouter(prefix="/users", tags=["Users"])


# Retrieve a list of users with filtering, sorting, and pagination (Admin only)
@router.get("", response_model=Envelope[UsersPage])
def get_all_users(
    q: Optional[str] = Query(None, description="Search by e-mail or name"),
    role: Optional[str] = Query(None, description="Filter by role"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    sort_by: Literal["created_at", "email", "name", "role"] = "created_at",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    query = db.query(User)

    if q:
        like = f"%{q.lower()}%"
        query = query.filter(User.email.ilike(like) | User.name.ilike(like))

    if role:
        query = query.filter(User.role.ilike(role))

    # Apply sorting based on selected field and order
    sort_map = {
        "created_at": User.created_at,
        "email": User.email,
        "name": User.name,
        "role": User.role,
    }
    col = sort_map.get(sort_by, User.created_at)
    query = query.order_by(col.asc() if order == "asc" else col.desc())

    # Apply pagination
    total = query.count()
    users = query.offset((page - 1) * page_size).limit(page_size).all()

    return {"data": {"items": users, "total": total, "page": page, "page_size": page_size}}


@router.get("/{user_id}", response_model=Envelope[UserResponse])
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("user not found")
    return {"data": user}


# Delete a user account (Admin only)
@router.delete("/{user_id}", response_model=Envelope[MessageOut])
def delete_user(
    user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("user not found")

    # Prevent self-deletion
    if user.id == current_user.id:
        raise ValidationError("you cannot delete your own account")

    email = user.email
    db.delete(user)
    try:
        commit_or_rollback(db, "deleting user")
    except IntegrityError:
        raise ConflictError("user still has orders or transactions")

    write_log(db, user_id=current_user.id, action="USER_DELETE", resource="users",
              ip=client_ip(request), meta={"user_id": str(user_id), "email": email})
    return {"data": {"message": f"user {email} has been deleted"}}
