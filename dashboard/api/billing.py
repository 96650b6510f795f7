from fastapi import APIRouter, Depends, Header, Request
from typing import Optional, Dict, Any

from services.billing_service import BillingService
from ..dependencies import get_billing_service

router = APIRouter(prefix="/api/stripe", tags=["billing"])

@router.post("/webhook", response_model=Dict[str, Any])
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    billing_service: BillingService = Depends(get_billing_service)
):
    """
    Webhook Stripe: подпись проверяется по сырому телу запроса
    """
    payload = await request.body()
    return await billing_service.handle_webhook(payload, stripe_signature)
