# backend/routes/orders.py
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User, ROLE_ADMIN, ROLE_CUSTOMER
from schemas.common import Envelope, MessageOut
from schemas.order import OrderCreate, OrderResponse, OrderStatusPatch
from services import orders as order_service
from utils.audit import write_log, client_ip
from utils.errors import AuthorizationError
from utils.tokenJWT import role_required, can_access

router = APIRouter(prefix="/orders", tags=["Orders"])


# Place an order for the current user
@router.post("", response_model=Envelope[OrderResponse], status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    order = order_service.create_order(db, current_user, payload.items)
    write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders",
              ip=client_ip(request),
              meta={"order_id": str(order.id), "total": str(order.total_price), "items": len(payload.items)})
    return {"data": order_service.get_order(db, order.id)}


# All orders (Admin only)
@router.get("", response_model=Envelope[List[OrderResponse]])
def list_orders(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    return {"data": order_service.list_orders(db)}


@router.get("/user/my-orders", response_model=Envelope[List[OrderResponse]])
def list_my_orders(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    return {"data": order_service.list_orders(db, user_id=current_user.id)}


# Get details of a specific order (owner or admin)
@router.get("/{order_id}", response_model=Envelope[OrderResponse])
def get_order_detail(
    order_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    order = order_service.get_order(db, order_id)
    if not can_access(current_user, order.user_id):
        raise AuthorizationError("access denied")
    return {"data": order}


# Manually update order status (Admin only)
@router.put("/{order_id}/status", response_model=Envelope[OrderResponse])
def update_order_status(
    order_id: UUID,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    old_status = order_service.get_order(db, order_id).status
    order = order_service.update_order_status(db, order_id, payload.status)
    write_log(db, user_id=current_user.id, action="ORDER_STATUS_CHANGE", resource="orders",
              ip=client_ip(request),
              meta={"order_id": str(order_id), "old": old_status.value, "new": order.status.value})
    return {"data": order_service.get_order(db, order_id)}


@router.delete("/{order_id}", response_model=Envelope[MessageOut])
def delete_order(
    order_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    order_service.delete_order(db, order_id)
    write_log(db, user_id=current_user.id, action="ORDER_DELETE", resource="orders",
              ip=client_ip(request), meta={"order_id": str(order_id)})
    return {"data": {"message": "order deleted successfully"}}
