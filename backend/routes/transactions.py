# backend/routes/transactions.py
import httpx
import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from database import get_db
from models.users import User, ROLE_ADMIN, ROLE_CUSTOMER
from schemas.common import Envelope, MessageOut
from schemas.transaction import (
    TransactionCreate, TransactionOut, TransactionStatusUpdate,
    EsewaPaymentRequest, EsewaCallback,
)
from services import transactions as transaction_service
from models.log import AUDIT_FAIL
from utils.audit import write_log, client_ip
from utils.errors import AuthorizationError, GatewayError, ValidationError
from utils.esewa_client import esewa_client
from utils.tokenJWT import role_required, get_optional_user, can_access

router = APIRouter(prefix="/transactions", tags=["Transactions"])
logger = logging.getLogger(__name__)


@router.post("", response_model=Envelope[TransactionOut], status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    transaction = transaction_service.create_transaction(
        db, payload.order_id, payload.payment_method, payload.amount, current_user
    )
    write_log(db, user_id=current_user.id, action="TRANSACTION_CREATE", resource="transactions",
              ip=client_ip(request),
              meta={"transaction_id": str(transaction.id), "order_id": str(payload.order_id),
                    "amount": str(payload.amount), "method": payload.payment_method.value})
    return {"data": transaction_service.get_transaction(db, transaction.id)}


# All transactions (Admin only)
@router.get("", response_model=Envelope[List[TransactionOut]])
def list_transactions(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    return {"data": transaction_service.list_transactions(db)}


@router.get("/user/my-transactions", response_model=Envelope[List[TransactionOut]])
def list_my_transactions(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    return {"data": transaction_service.list_transactions(db, user_id=current_user.id)}


@router.get("/order/{order_id}", response_model=Envelope[TransactionOut])
def get_transaction_by_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    transaction = transaction_service.get_transaction_by_order(db, order_id)
    if not can_access(current_user, transaction.user_id):
        raise AuthorizationError("access denied")
    return {"data": transaction}


# Redirect half of the eSewa handshake: returns the transaction with payment_url set
@router.post("/esewa/initiate", response_model=Envelope[TransactionOut])
def initiate_esewa_payment(
    payload: EsewaPaymentRequest,
    request: Request,
    transaction_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    # Transaction id from the query string, falling back to the body
    transaction_id = transaction_id or payload.transaction_id
    if transaction_id is None:
        raise ValidationError("transaction ID is required")

    transaction = transaction_service.initiate_esewa_payment(db, transaction_id, payload, current_user)
    write_log(db, user_id=current_user.id, action="ESEWA_INITIATE", resource="transactions",
              ip=client_ip(request), meta={"transaction_id": str(transaction_id)})
    return {"data": transaction_service.get_transaction(db, transaction_id)}


# Callback half of the handshake. The gateway redirects the browser here, so
# a bearer token is optional and only used for the audit log.
@router.post("/esewa/verify", response_model=Envelope[TransactionOut])
def verify_esewa_payment(
    payload: EsewaCallback,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    data = payload.model_dump(exclude_none=True)
    logger.info("eSewa callback received: code=%s status=%s", data.get("transaction_code"), data.get("status"))

    try:
        transaction = transaction_service.verify_esewa_payment(db, data)
    except Exception as e:
        write_log(db, user_id=(current_user.id if current_user else None), action="ESEWA_VERIFY",
                  resource="transactions", status=AUDIT_FAIL, ip=client_ip(request),
                  meta={"transaction_code": data.get("transaction_code"), "reason": str(e)})
        raise

    write_log(db, user_id=(current_user.id if current_user else None), action="ESEWA_VERIFY",
              resource="transactions", ip=client_ip(request),
              meta={"transaction_id": str(transaction.id), "gateway_status": data.get("status"),
                    "status": transaction.status.value})
    return {"data": transaction_service.get_transaction(db, transaction.id)}


@router.get("/{transaction_id}", response_model=Envelope[TransactionOut])
def get_transaction(
    transaction_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    transaction = transaction_service.get_transaction(db, transaction_id)
    if not can_access(current_user, transaction.user_id):
        raise AuthorizationError("access denied")
    return {"data": transaction}


# Update transaction status (Admin only)
@router.put("/{transaction_id}/status", response_model=Envelope[TransactionOut])
def update_transaction_status(
    transaction_id: UUID,
    payload: TransactionStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    transaction = transaction_service.update_transaction_status(
        db, transaction_id, payload.status,
        external_ref=payload.external_ref,
        failure_reason=payload.failure_reason,
        gateway_response=payload.gateway_response,
    )
    write_log(db, user_id=current_user.id, action="TRANSACTION_STATUS_CHANGE", resource="transactions",
              ip=client_ip(request), meta={"transaction_id": str(transaction_id), "new": transaction.status.value})
    return {"data": transaction_service.get_transaction(db, transaction_id)}


# Ask the gateway for the settlement state and reconcile it (Admin only)
@router.post("/{transaction_id}/esewa/status-check", response_model=Envelope[TransactionOut])
async def check_esewa_status(
    transaction_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    # Database work runs in the threadpool; only the gateway call is awaited here
    transaction = await run_in_threadpool(transaction_service.get_transaction, db, transaction_id)
    try:
        result = await esewa_client.check_status(
            transaction_id=transaction.id,
            total_amount=transaction.amount,
            product_code=transaction.product_code or esewa_client.merchant_code,
        )
    except httpx.HTTPError as e:
        logger.exception("eSewa status check failed for %s: %s", transaction_id, e)
        raise GatewayError("payment gateway is unavailable")

    def reconcile():
        transaction_service.apply_gateway_status(db, transaction, result)
        write_log(db, user_id=current_user.id, action="ESEWA_STATUS_CHECK", resource="transactions",
                  ip=client_ip(request),
                  meta={"transaction_id": str(transaction_id), "gateway_status": result.get("status")})
        return transaction_service.get_transaction(db, transaction_id)

    return {"data": await run_in_threadpool(reconcile)}


@router.delete("/{transaction_id}", response_model=Envelope[MessageOut])
def delete_transaction(
    transaction_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    transaction_service.delete_transaction(db, transaction_id)
    write_log(db, user_id=current_user.id, action="TRANSACTION_DELETE", resource="transactions",
              ip=client_ip(request), meta={"transaction_id": str(transaction_id)})
    return {"data": {"message": "transaction deleted successfully"}}
