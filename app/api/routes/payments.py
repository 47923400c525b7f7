"""
Payment, activation, webhook, invoice and refund endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj, require_admin
from app.core.errors import NotFoundError, PaymentNotActivatableError
from app.core.logging_config import sanitize_log_data
from app.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    InvoiceEnvelope,
    InvoiceListResponse,
    PaymentHistoryResponse,
    ProcessRefundRequest,
    RefundCreateRequest,
    RefundEnvelope,
    RefundListResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.schemas.plan import SubscriptionResponse
from app.services.payment_gateway import get_gateway
from app.services.activation_service import (
    activate_payment,
    create_order,
    get_payment_history,
    handle_gateway_event,
)
from app.services.invoice_service import get_invoice, list_invoices
from app.services.refund_service import list_refunds, process_refund, request_refund

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-order", status_code=status.HTTP_201_CREATED, response_model=CreateOrderResponse)
def create_payment_order(
    body: CreateOrderRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
):
    payment, gateway_order = create_order(db, user.id, body.plan_id, body.billing_cycle, gateway)
    return {
        "success": True,
        "order": {
            "id": gateway_order["id"],
            "order_id": payment.order_id,
            "amount": gateway_order["amount"],
            "currency": gateway_order["currency"],
            "client_secret": gateway_order.get("client_secret"),
        },
    }


@router.post("/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    body: VerifyPaymentRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
):
    """
    Verify the gateway signature, then activate the subscription.

    Replaying a confirmation that was already applied returns the same
    subscription and invoice.
    """
    logger.info(f"Payment verification: user_id={user.id}, request={sanitize_log_data(body.model_dump())}")
    if not gateway.verify_signature(body.gateway_order_id, body.gateway_payment_id, body.signature):
        logger.warning(f"Invalid payment signature: user_id={user.id}, gateway_order_id={body.gateway_order_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "message": "Invalid payment signature"}
        )

    result = activate_payment(
        db,
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
        payment_method=body.payment_method,
        user_id=user.id,
    )
    return {
        "success": True,
        "message": "Payment already processed" if result.already_processed else "Payment successful",
        "already_processed": result.already_processed,
        "subscription": SubscriptionResponse.model_validate(result.subscription).model_dump() if result.subscription else None,
        "invoice": result.invoice,
    }


@router.post("/webhook")
async def gateway_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
):
    payload = await request.body()
    try:
        event = gateway.construct_event(payload, stripe_signature)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook verification failed: {e}")

    try:
        handle_gateway_event(db, event)
    except NotFoundError as e:
        # Acknowledge so the gateway stops retrying an event we can never apply.
        logger.warning(f"Webhook event {event.get('id')} references unknown record: {e.message}")
    except PaymentNotActivatableError as e:
        logger.warning(f"Webhook event {event.get('id')} ignored: {e.message}")

    return {"received": True}


@router.get("/history", response_model=PaymentHistoryResponse)
def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return {"success": True, **get_payment_history(db, user.id, page, limit, status_filter)}


@router.post("/refunds", status_code=status.HTTP_201_CREATED, response_model=RefundEnvelope)
def create_refund_request(
    body: RefundCreateRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    refund = request_refund(db, user.id, body.payment_id, body.reason, body.description)
    return {"success": True, "message": "Refund request submitted", "refund": refund}


@router.post("/refunds/process", response_model=RefundEnvelope)
def process_refund_request(
    body: ProcessRefundRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
):
    refund = process_refund(db, body.refund_id, admin.id, body.action, gateway, body.admin_notes)
    message = "Refund processed successfully" if body.action == "approve" else "Refund request rejected"
    return {"success": True, "message": message, "refund": refund}


@router.get("/refunds", response_model=RefundListResponse)
def refund_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin view of refund requests, newest first."""
    return {"success": True, **list_refunds(db, status_filter, page, limit)}


@router.get("/invoices", response_model=InvoiceListResponse)
def user_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """The caller's invoices, newest first."""
    return {"success": True, **list_invoices(db, user.id, page, limit)}


@router.get("/invoices/{invoice_id}", response_model=InvoiceEnvelope)
def invoice_by_id(
    invoice_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return {"success": True, "invoice": get_invoice(db, user.id, invoice_id)}
