import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.payment import Payment
from app.models.plan import Plan
from app.models.user import User
from app.schemas.payment import PaymentStatusEnum, PaymentStatusUpdate, ProcessPayment, RefundRequest
from app.services.auth_middleware import get_current_admin, get_current_user
from app.services.payment_service import (
    apply_status_change,
    filtered_payments,
    monthly_report,
    payment_listing,
    refund_payment,
    serialize_payment,
    status_breakdown,
    total_revenue,
)
from app.services.subscription_service import clear_expired_subscriptions, purchase_plan, subscription_snapshot
from app.utils.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def _get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Payment not found", code="PAYMENT_NOT_FOUND")
    return payment


@router.post("/process")
def process_payment(body: ProcessPayment, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        plan = db.query(Plan).filter(Plan.id == body.plan_id).first()
        if not plan:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Plan not found", code="PLAN_NOT_FOUND")

        payment = purchase_plan(db, user, plan, gateway=body.payment_gateway, succeeded=body.mock_success)
        db.commit()
        db.refresh(payment)

        if not body.mock_success:
            logger.warning("Payment %s failed for user %s", payment.transaction_id, user.id)
            return create_response(
                message="Payment failed. Please try again.",
                data={"payment": serialize_payment(payment)},
                status_code=status.HTTP_400_BAD_REQUEST,
                code="PAYMENT_FAILED",
            )

        db.refresh(user)
        logger.info("Payment %s succeeded for user %s", payment.transaction_id, user.id)
        return create_response(
            message="Payment processed successfully",
            data={"payment": serialize_payment(payment), "subscription": subscription_snapshot(user)},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/history")
def payment_history(
    status_filter: Optional[PaymentStatusEnum] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        query = filtered_payments(
            db,
            status_filter=status_filter.value if status_filter else None,
            user_id=user.id,
        )
        data = payment_listing(db, query, page, limit)
        data["total_spent"] = total_revenue(db, user_id=user.id)
        return create_response(message="Payment history fetched", data=data)
    except Exception as exc:
        return handle_exception(exc)


@router.get("/reports/generate")
def generate_report(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        report = monthly_report(db, start_date=start_date, end_date=end_date)
        return create_response(
            message="Payment report generated",
            data={
                "report": report,
                "summary": {
                    "total_revenue": sum(month["total_revenue"] for month in report),
                    "total_transactions": sum(month["total_transactions"] for month in report),
                },
                "period": {"start_date": start_date, "end_date": end_date},
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/subscriptions/check-expired")
def check_expired_subscriptions(db: Session = Depends(get_db), admin=Depends(get_current_admin)):
    del admin
    try:
        expired = clear_expired_subscriptions(db)
        db.commit()
        logger.info("Cleared %s expired subscriptions", len(expired))
        return create_response(
            message=f"Processed {len(expired)} expired subscriptions",
            data={"expired_count": len(expired), "expired_users": expired},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("")
def list_payments(
    status_filter: Optional[PaymentStatusEnum] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        query = filtered_payments(
            db,
            status_filter=status_filter.value if status_filter else None,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
        )
        data = payment_listing(db, query, page, limit)
        data["stats"] = status_breakdown(query)
        data["total_revenue"] = total_revenue(db)
        return create_response(message="Payments fetched", data=data)
    except Exception as exc:
        return handle_exception(exc)


@router.get("/{payment_id}")
def get_payment(payment_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        payment = (
            db.query(Payment)
            .filter(Payment.id == payment_id, Payment.user_id == user.id)
            .first()
        )
        if not payment:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Payment not found", code="PAYMENT_NOT_FOUND")
        return create_response(message="Payment fetched", data={"payment": serialize_payment(payment)})
    except Exception as exc:
        return handle_exception(exc)


@router.put("/{payment_id}/status")
def update_payment_status(
    payment_id: int,
    body: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    try:
        payment = _get_payment(db, payment_id)
        old_status = payment.payment_status
        apply_status_change(payment, body.status.value)
        db.commit()
        db.refresh(payment)
        logger.info("Admin %s moved payment %s from %s to %s", admin.id, payment.id, old_status, payment.payment_status)
        return create_response(message="Payment status updated successfully", data={"payment": serialize_payment(payment)})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/{payment_id}/refund")
def refund(
    payment_id: int,
    body: Optional[RefundRequest] = None,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    try:
        payment = _get_payment(db, payment_id)
        refund_payment(payment, body.reason if body else None)
        db.commit()
        db.refresh(payment)
        logger.info("Admin %s refunded payment %s", admin.id, payment.id)
        return create_response(message="Refund processed successfully", data={"payment": serialize_payment(payment)})
    except Exception as exc:
        return handle_exception(exc)
