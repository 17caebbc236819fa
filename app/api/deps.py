from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import InvalidTokenError, verify_subject
from app.db.session import get_db
from app.services.booking_service import BookingService
from app.services.booking_state import utcnow
from app.services.notification_service import CeleryNotifier
from app.services.operator_scope import OperatorScope, resolve_operator_scope
from app.services.payment_service import PaymentConfig
from app.services.stripe_client import StripeClient, StripeConfig
from app.services.webhook_service import WebhookReconciler

bearer = HTTPBearer(auto_error=False)


def get_auth_subject(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return verify_subject(creds.credentials)
    except InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_operator_scope(
    subject: str = Depends(get_auth_subject),
    db: Session = Depends(get_db),
) -> OperatorScope:
    return resolve_operator_scope(db, subject)


@lru_cache
def get_payment_config() -> PaymentConfig:
    return PaymentConfig.from_settings(settings)


def get_gateway() -> StripeClient:
    return StripeClient(StripeConfig(secret_key=settings.STRIPE_SECRET_KEY))


def get_notifier() -> CeleryNotifier:
    return CeleryNotifier()


def get_clock():
    return utcnow


def get_booking_service(
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    config: PaymentConfig = Depends(get_payment_config),
    notifier=Depends(get_notifier),
    clock=Depends(get_clock),
) -> BookingService:
    return BookingService(db, gateway, config, notifier, clock)


def get_webhook_reconciler(
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
    clock=Depends(get_clock),
) -> WebhookReconciler:
    return WebhookReconciler(db, notifier, clock)
