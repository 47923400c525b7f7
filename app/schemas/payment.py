"""
Pydantic schemas for payment, invoice and refund endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class CreateOrderRequest(BaseModel):
    plan_id: int = Field(..., description="Plan to subscribe to")
    billing_cycle: str = Field(..., description="'monthly' or 'annual'", pattern="^(monthly|annual)$")

    class Config:
        json_schema_extra = {
            "example": {"plan_id": 2, "billing_cycle": "annual"}
        }


class GatewayOrder(BaseModel):
    id: str = Field(..., description="Gateway order id")
    order_id: str = Field(..., description="Internal order id")
    amount: float
    currency: str
    client_secret: Optional[str] = None


class CreateOrderResponse(BaseModel):
    success: bool = True
    order: GatewayOrder


class VerifyPaymentRequest(BaseModel):
    """Client-side confirmation relayed after checkout."""
    gateway_order_id: str
    gateway_payment_id: str
    signature: str
    payment_method: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    order_id: str
    plan_id: Optional[int] = None
    amount: float
    currency: str
    status: str
    billing_cycle: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceItem(BaseModel):
    description: str
    quantity: int
    unit_price: float
    amount: float


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    payment_id: int
    items: List[InvoiceItem]
    subtotal: float
    tax_rate: float
    tax_amount: float
    total: float
    currency: str
    status: str
    paid_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoicePaymentSummary(BaseModel):
    id: int
    order_id: str
    amount: float
    currency: str
    status: str

    class Config:
        from_attributes = True


class InvoiceDetailResponse(InvoiceResponse):
    created_at: datetime
    payment: Optional[InvoicePaymentSummary] = None


class InvoiceListResponse(BaseModel):
    success: bool = True
    invoices: List[InvoiceDetailResponse]
    total: int
    current_page: int
    total_pages: int


class InvoiceEnvelope(BaseModel):
    success: bool = True
    invoice: InvoiceDetailResponse


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str
    already_processed: bool = False
    subscription: Optional[Dict[str, Any]] = None
    invoice: Optional[InvoiceResponse] = None


class PaymentHistoryResponse(BaseModel):
    success: bool = True
    payments: List[PaymentResponse]
    total: int
    current_page: int
    total_pages: int


class RefundCreateRequest(BaseModel):
    payment_id: int
    reason: str = Field(..., pattern="^(duplicate-payment|service-not-delivered|not-as-described|technical-issue|change-of-mind|other)$")
    description: Optional[str] = None


class ProcessRefundRequest(BaseModel):
    refund_id: int
    action: str = Field(..., pattern="^(approve|reject)$")
    admin_notes: Optional[str] = None


class RefundResponse(BaseModel):
    id: int
    payment_id: int
    amount: float
    reason: str
    status: str
    gateway_refund_id: Optional[str] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RefundEnvelope(BaseModel):
    success: bool = True
    message: str
    refund: RefundResponse


class RefundListResponse(BaseModel):
    success: bool = True
    refunds: List[RefundResponse]
    total: int
    current_page: int
    total_pages: int
