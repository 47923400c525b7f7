"""
Domain exceptions and their HTTP mapping.

Entitlement denials are never raised; they travel as result values.
These exceptions cover lookups that fail, invalid transitions and
payment gateway failures.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class EntitlementError(Exception):
    """Base class for errors raised by the entitlement core."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(EntitlementError):
    status_code = 404


class PlanNotFoundError(NotFoundError):
    def __init__(self, plan_id):
        super().__init__("Plan not found")
        self.plan_id = plan_id


class SubscriptionNotFoundError(NotFoundError):
    def __init__(self, subscription_id):
        super().__init__("Subscription not found")
        self.subscription_id = subscription_id


class PaymentNotFoundError(NotFoundError):
    def __init__(self, reference):
        super().__init__("Payment not found")
        self.reference = reference


class JobNotFoundError(NotFoundError):
    def __init__(self, job_id):
        super().__init__("Job not found")
        self.job_id = job_id


class InvoiceNotFoundError(NotFoundError):
    def __init__(self, invoice_id):
        super().__init__("Invoice not found")
        self.invoice_id = invoice_id


class RefundNotFoundError(NotFoundError):
    def __init__(self, refund_id):
        super().__init__("Refund request not found")
        self.refund_id = refund_id


class DuplicatePlanNameError(EntitlementError):
    def __init__(self, name: str):
        super().__init__("Plan name already exists")
        self.name = name


class PlanInUseError(EntitlementError):
    def __init__(self, plan_id, message: str):
        super().__init__(message)
        self.plan_id = plan_id


class InvalidSubscriptionStateError(EntitlementError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move subscription from {current} to {target}")
        self.current = current
        self.target = target


class FreePlanOrderError(EntitlementError):
    def __init__(self):
        super().__init__("Cannot create order for free plan")


class InvalidBillingCycleError(EntitlementError):
    def __init__(self, billing_cycle: str):
        super().__init__(f"Invalid billing cycle: {billing_cycle}")
        self.billing_cycle = billing_cycle


class PaymentNotActivatableError(EntitlementError):
    def __init__(self, status: str):
        super().__init__(f"Payment in status '{status}' cannot be activated")
        self.status = status


class PaymentNotRefundableError(EntitlementError):
    pass


class InvalidRefundActionError(EntitlementError):
    def __init__(self, action: str):
        super().__init__(f"Invalid action: {action}")
        self.action = action


class JobOwnershipError(EntitlementError):
    status_code = 403


class ForbiddenError(EntitlementError):
    status_code = 403


class GatewayError(EntitlementError):
    """Payment gateway call failed; no local state was changed."""
    status_code = 502


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(EntitlementError)
    async def entitlement_error_handler(request: Request, exc: EntitlementError):
        if exc.status_code >= 500:
            logger.error(f"Gateway failure on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Server error"},
        )
