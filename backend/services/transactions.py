# backend/services/transactions.py
"""Payment transactions and the eSewa redirect handshake.

A transaction is bound 1:1 to an order and starts in PENDING. It settles
to SUCCESS, FAILED or CANCELLED either through an admin status update or
through the gateway callback. Settling to SUCCESS marks the order PAID in
the same database transaction, so the two rows never disagree.
"""
import logging
import uuid
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from database import commit_or_rollback
from models.book import Book
from models.order import Order, OrderItem, OrderStatus
from models.transaction import PaymentMethod, Transaction, TransactionStatus
from services.orders import advance_order_status
from utils.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from utils.esewa_client import esewa_client
from utils.money import to_money
from utils.tokenJWT import can_access

logger = logging.getLogger(__name__)

# Allowed transaction status changes; a settled transaction only accepts
# its own status again (replayed callbacks).
TRANSACTION_TRANSITIONS = {
    TransactionStatus.PENDING: set(TransactionStatus),
    TransactionStatus.SUCCESS: {TransactionStatus.SUCCESS},
    TransactionStatus.FAILED: {TransactionStatus.FAILED},
    TransactionStatus.CANCELLED: {TransactionStatus.CANCELLED},
}

# Gateway vocabulary -> internal status; anything else stays PENDING
GATEWAY_STATUS_MAP = {
    "COMPLETE": TransactionStatus.SUCCESS,
    "SUCCESS": TransactionStatus.SUCCESS,
    "FAILED": TransactionStatus.FAILED,
    "ERROR": TransactionStatus.FAILED,
}


def parse_transaction_status(value) -> TransactionStatus:
    if isinstance(value, TransactionStatus):
        return value
    try:
        return TransactionStatus(str(value).upper())
    except ValueError:
        raise ValidationError("invalid transaction status")


def _transaction_query(db: Session):
    return db.query(Transaction).options(
        joinedload(Transaction.user),
        joinedload(Transaction.order).joinedload(Order.user),
        joinedload(Transaction.order)
        .selectinload(Order.items)
        .joinedload(OrderItem.book)
        .joinedload(Book.category),
    )


def get_transaction(db: Session, transaction_id) -> Transaction:
    transaction = _transaction_query(db).filter(Transaction.id == transaction_id).first()
    if not transaction:
        raise NotFoundError("transaction not found")
    return transaction


def get_transaction_by_order(db: Session, order_id) -> Transaction:
    transaction = _transaction_query(db).filter(Transaction.order_id == order_id).first()
    if not transaction:
        raise NotFoundError("transaction not found for this order")
    return transaction


def list_transactions(db: Session, user_id=None):
    q = _transaction_query(db)
    if user_id is not None:
        q = q.filter(Transaction.user_id == user_id)
    return q.order_by(Transaction.created_at.desc()).all()


def create_transaction(db: Session, order_id, payment_method, amount, user) -> Transaction:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("order not found")

    if order.user_id != user.id:
        raise AuthorizationError("order does not belong to user")

    existing = db.query(Transaction.id).filter(Transaction.order_id == order.id).first()
    if existing:
        raise ConflictError("transaction already exists for this order")

    try:
        amount = to_money(amount)
    except ValueError:
        raise ValidationError("invalid amount")
    order_total = to_money(order.total_price)
    if amount != order_total:
        raise ValidationError(f"amount {amount} does not match order total {order_total}")

    if isinstance(payment_method, PaymentMethod):
        method = payment_method
    else:
        try:
            method = PaymentMethod(str(payment_method).upper())
        except ValueError:
            raise ValidationError("invalid payment method")

    transaction = Transaction(
        order_id=order.id,
        user_id=user.id,
        payment_method=method,
        amount=amount,
        status=TransactionStatus.PENDING,
        product_name="Book Order",
    )
    db.add(transaction)
    try:
        commit_or_rollback(db, "creating transaction")
    except IntegrityError:
        # unique(order_id) lost a race with a concurrent creator
        raise ConflictError("transaction already exists for this order")

    logger.info("Transaction %s created for order %s", transaction.id, order.id)
    return get_transaction(db, transaction.id)


def _apply_status(db: Session, transaction: Transaction, target: TransactionStatus, **fields):
    current = TransactionStatus(transaction.status)
    if target not in TRANSACTION_TRANSITIONS[current]:
        raise ValidationError(
            f"cannot change transaction status from {current.value} to {target.value}"
        )

    values = {k: v for k, v in fields.items() if v not in (None, "")}
    values["status"] = target
    result = db.execute(
        update(Transaction)
        .where(Transaction.id == transaction.id, Transaction.status == current)
        .values(**values)
    )
    if result.rowcount != 1:
        raise ConflictError("transaction was modified concurrently")

    if target == TransactionStatus.SUCCESS:
        order = db.query(Order).filter(Order.id == transaction.order_id).first()
        if order is None:
            raise NotFoundError("order not found")
        advance_order_status(db, order, OrderStatus.PAID)


def _settle(db: Session, transaction: Transaction, target: TransactionStatus, context: str, **fields):
    # Transaction and order changes share one commit; any failure undoes both
    try:
        _apply_status(db, transaction, target, **fields)
        commit_or_rollback(db, context)
    except IntegrityError:
        db.rollback()
        raise ConflictError("external reference is already used by another transaction")
    except Exception:
        db.rollback()
        raise


def update_transaction_status(db: Session, transaction_id, status, external_ref=None,
                              failure_reason=None, gateway_response=None) -> Transaction:
    target = parse_transaction_status(status)
    transaction = get_transaction(db, transaction_id)
    _settle(
        db, transaction, target, "updating transaction status",
        external_ref=external_ref,
        failure_reason=failure_reason,
        gateway_response=gateway_response,
    )
    logger.info("Transaction %s set to %s", transaction_id, target.value)
    return get_transaction(db, transaction_id)


def initiate_esewa_payment(db: Session, transaction_id, details, user=None) -> Transaction:
    """Stamp gateway details and build the redirect URL for a PENDING transaction."""
    transaction = get_transaction(db, transaction_id)

    if user is not None and not can_access(user, transaction.user_id):
        raise AuthorizationError("access denied")

    if transaction.status != TransactionStatus.PENDING:
        raise ValidationError("transaction is not in pending status")

    if details.amount is not None and to_money(details.amount) != to_money(transaction.amount):
        raise ValidationError("amount does not match transaction amount")

    payment_url = esewa_client.build_payment_url(
        transaction_id=transaction.id,
        amount=transaction.amount,
        product_code=details.product_code,
        tax_amount=details.tax_amount,
        service_charge=details.product_service_charge,
        delivery_charge=details.product_delivery_charge,
        success_url=details.success_url,
        failure_url=details.failure_url,
    )

    result = db.execute(
        update(Transaction)
        .where(Transaction.id == transaction.id, Transaction.status == TransactionStatus.PENDING)
        .values(
            merchant_code=esewa_client.merchant_code,
            product_code=details.product_code,
            product_name=details.product_name,
            payment_url=payment_url,
        )
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("transaction was modified concurrently")
    commit_or_rollback(db, "initiating eSewa payment")

    logger.info("eSewa payment initiated for transaction %s", transaction.id)
    return get_transaction(db, transaction.id)


def verify_esewa_payment(db: Session, payload: dict, check_signature: bool = True) -> Transaction:
    """Reconcile a gateway callback with the stored transaction.

    ``transaction_code`` (or eSewa's ``transaction_uuid``) must be the id this
    system generated. The whole payload is stored as ``gateway_response``.
    """
    code = payload.get("transaction_code") or payload.get("transaction_uuid")
    try:
        transaction_id = uuid.UUID(str(code))
    except (TypeError, ValueError):
        raise ValidationError("invalid transaction code")

    transaction = get_transaction(db, transaction_id)

    if check_signature and (payload.get("signature") or esewa_client.require_signature):
        if not esewa_client.verify_signature(payload):
            logger.warning("eSewa signature verification failed for transaction %s", transaction_id)
            raise ValidationError("invalid gateway signature")

    gateway_status = str(payload.get("status") or "").upper()
    target = GATEWAY_STATUS_MAP.get(gateway_status, TransactionStatus.PENDING)

    failure_reason = None
    if target == TransactionStatus.SUCCESS and payload.get("total_amount"):
        try:
            paid = to_money(payload["total_amount"])
        except ValueError:
            raise ValidationError("invalid total amount")
        if paid < to_money(transaction.amount):
            raise ValidationError(
                f"paid amount {paid} is lower than transaction amount {to_money(transaction.amount)}"
            )
    elif target == TransactionStatus.FAILED:
        failure_reason = payload.get("message") or f"gateway reported {gateway_status}"

    logger.info("eSewa callback for transaction %s: %s -> %s", transaction_id, gateway_status, target.value)
    _settle(
        db, transaction, target, "verifying eSewa payment",
        external_ref=payload.get("ref_id"),
        failure_reason=failure_reason,
        gateway_response=payload,
    )
    return get_transaction(db, transaction_id)


def apply_gateway_status(db: Session, transaction: Transaction, result: dict) -> Transaction:
    """Feed a status-check answer through the same reconciliation as a callback."""
    payload = dict(result)
    payload["transaction_code"] = str(transaction.id)
    return verify_esewa_payment(db, payload, check_signature=False)


def delete_transaction(db: Session, transaction_id):
    transaction = get_transaction(db, transaction_id)
    db.delete(transaction)
    commit_or_rollback(db, "deleting transaction")
