# storefront/api/routers/payments.py
from fastapi import APIRouter, Depends

from storefront.api.deps import get_payment_service
from storefront.domain.schemas import PaymentConfirmIn, PaymentFailIn, PaymentOut
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/by-authority/{authority}", response_model=PaymentOut)
def find_by_authority(authority: str, svc: PaymentService = Depends(get_payment_service)):
    return svc.find_by_authority(authority)


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: int, svc: PaymentService = Depends(get_payment_service)):
    return svc.get_payment(payment_id)


@router.post("/{payment_id}/confirm", response_model=PaymentOut)
def confirm_payment(payment_id: int, payload: PaymentConfirmIn, svc: PaymentService = Depends(get_payment_service)):
    """Called once the provider reports success (return URL or webhook)."""
    return svc.mark_paid(payment_id, payload.transaction_ref)


@router.post("/{payment_id}/fail", response_model=PaymentOut)
def fail_payment(payment_id: int, payload: PaymentFailIn, svc: PaymentService = Depends(get_payment_service)):
    return svc.mark_failed(payment_id, payload.reason)
