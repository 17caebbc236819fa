from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from app.core.exceptions import PaymentConfigurationError, ValidationException
from app.services.money import minor_to_major, minor_unit_multiplier, normalize_currency, MoneyError

FX_SOURCE_JOD_TO_USD = "env:FX_RATE_JOD_TO_USD"
# The one supported ledger -> charge conversion
SUPPORTED_FX_PAIR = ("JOD", "USD")


@dataclass(frozen=True)
class PaymentConfig:
    platform_charge_currency: str = "USD"
    fx_rate_jod_to_usd: Decimal | None = None
    hold_window_minutes: int = 15
    enforce_unique_phone: bool = False
    success_url: str = ""
    cancel_url: str = ""
    force_currency: str = ""
    environment: str = "local"

    @classmethod
    def from_settings(cls, s) -> "PaymentConfig":
        return cls(
            platform_charge_currency=(s.STRIPE_PLATFORM_CHARGE_CURRENCY or "usd").strip().upper(),
            fx_rate_jod_to_usd=parse_fx_rate(s.FX_RATE_JOD_TO_USD),
            hold_window_minutes=int(s.HOLD_WINDOW_MINUTES),
            enforce_unique_phone=bool(s.ENFORCE_UNIQUE_PHONE),
            success_url=(s.STRIPE_SUCCESS_URL or "").strip(),
            cancel_url=(s.STRIPE_CANCEL_URL or "").strip(),
            force_currency=(s.STRIPE_FORCE_CURRENCY or "").strip().upper(),
            environment=(s.ENV or "").strip().lower(),
        )

    def require_checkout_urls(self) -> None:
        if not self.success_url:
            raise PaymentConfigurationError("STRIPE_SUCCESS_URL missing from environment", code="missing_success_url")
        if not self.cancel_url:
            raise PaymentConfigurationError("STRIPE_CANCEL_URL missing from environment", code="missing_cancel_url")


@dataclass(frozen=True)
class ChargeQuote:
    ledger_currency: str
    ledger_amount_minor: int
    ledger_amount_major: Decimal
    charge_currency: str
    charge_amount_minor: int
    fx_rate_estimate: Decimal | None = None
    fx_rate_source: str | None = None

    @property
    def charge_amount_major(self) -> Decimal:
        return Decimal(self.charge_amount_minor) / Decimal(minor_unit_multiplier(self.charge_currency))


def parse_fx_rate(raw) -> Decimal | None:
    raw = str(raw or "").strip()
    if not raw:
        return None
    try:
        rate = Decimal(raw)
    except InvalidOperation:
        return None
    if not rate.is_finite() or rate <= 0:
        return None
    return rate


def resolve_charge_currency(config: PaymentConfig) -> str:
    if config.environment == "development" and config.force_currency:
        return config.force_currency
    return config.platform_charge_currency


def compute_charge(ledger_amount_minor, ledger_currency, config: PaymentConfig) -> ChargeQuote:
    """Mirror the ledger snapshot into the charge currency; the ledger side is never touched.

    charge_minor = round_half_up(ledger_major * fx_rate * charge_multiplier)
    """
    ledger_cur = normalize_currency(ledger_currency)
    if not ledger_cur:
        raise ValidationException(
            "Booking has no valid payment_currency snapshot",
            code="missing_pricing_snapshot",
            details={"payment_currency": ledger_currency},
        )
    charge_cur = normalize_currency(resolve_charge_currency(config))
    if not charge_cur:
        raise PaymentConfigurationError(
            "STRIPE_PLATFORM_CHARGE_CURRENCY is invalid",
            code="invalid_charge_currency",
            details={"charge_currency": config.platform_charge_currency},
        )

    try:
        ledger_minor = int(ledger_amount_minor)
        ledger_major = minor_to_major(ledger_minor, ledger_cur)
    except (TypeError, ValueError, MoneyError) as e:
        raise ValidationException(
            "Invalid payment_amount_minor on booking",
            code="missing_pricing_snapshot",
            details={"payment_amount_minor": None if ledger_amount_minor is None else str(ledger_amount_minor)},
        ) from e

    fx_rate = None
    fx_source = None
    charge_major = ledger_major
    if ledger_cur != charge_cur:
        if (ledger_cur, charge_cur) != SUPPORTED_FX_PAIR:
            raise PaymentConfigurationError(
                "Unsupported FX path (expected JOD->USD)",
                code="unsupported_fx_path",
                details={"ledger_currency": ledger_cur, "charge_currency": charge_cur},
            )
        if config.fx_rate_jod_to_usd is None:
            raise PaymentConfigurationError(
                "FX_RATE_JOD_TO_USD missing or invalid (required for JOD ledger -> USD charge)",
                code="missing_fx_rate",
            )
        fx_rate = config.fx_rate_jod_to_usd
        fx_source = FX_SOURCE_JOD_TO_USD
        charge_major = ledger_major * fx_rate

    charge_minor = int(
        (charge_major * minor_unit_multiplier(charge_cur)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    if charge_minor <= 0:
        raise ValidationException(
            "Invalid computed Stripe charge amount minor",
            code="invalid_charge_amount",
            details={
                "ledger_currency": ledger_cur,
                "ledger_amount_minor": str(ledger_minor),
                "charge_currency": charge_cur,
                "charge_amount_minor": str(charge_minor),
            },
        )

    return ChargeQuote(
        ledger_currency=ledger_cur,
        ledger_amount_minor=ledger_minor,
        ledger_amount_major=ledger_major,
        charge_currency=charge_cur,
        charge_amount_minor=charge_minor,
        fx_rate_estimate=fx_rate,
        fx_rate_source=fx_source,
    )
