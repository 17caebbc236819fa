from dataclasses import dataclass
import stripe

from app.core.exceptions import PaymentConfigurationError, StripeGatewayError


@dataclass
class StripeConfig:
    secret_key: str
    max_network_retries: int = 2
    timeout: int = 30


@dataclass
class CheckoutSession:
    id: str
    url: str | None = None
    status: str | None = None

    @classmethod
    def from_stripe(cls, s) -> "CheckoutSession":
        # SDK objects are attribute-access only; never coerce them with dict().
        return cls(id=str(s.id), url=getattr(s, "url", None), status=getattr(s, "status", None))


class StripeClient:
    """The two gateway calls the booking core needs.

    Anything exposing ``create_checkout_session`` and ``retrieve_checkout_session``
    with these shapes can stand in (tests use a fake).
    """

    def __init__(self, cfg: StripeConfig):
        self.cfg = cfg
        self._sdk = None

    @property
    def _client(self) -> stripe.StripeClient:
        # Built on first call so requests that never touch Stripe work without keys.
        if self._sdk is None:
            key = (self.cfg.secret_key or "").strip()
            if not key:
                raise PaymentConfigurationError(
                    "Stripe is not configured on this server (missing STRIPE_SECRET_KEY).",
                    code="stripe_not_configured",
                )
            self._sdk = stripe.StripeClient(
                key,
                max_network_retries=self.cfg.max_network_retries,
                http_client=stripe.RequestsClient(timeout=self.cfg.timeout),
            )
        return self._sdk

    def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: dict,
        product_name: str,
        description: str = "",
        customer_email: str | None = None,
    ) -> CheckoutSession:
        params = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items": [{
                "quantity": 1,
                "price_data": {
                    "currency": currency.lower(),
                    "unit_amount": int(amount_minor),
                    "product_data": {"name": product_name, **({"description": description} if description else {})},
                },
            }],
            # Stripe metadata values must be strings
            "metadata": {k: "" if v is None else str(v) for k, v in metadata.items()},
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            s = self._client.v1.checkout.sessions.create(params=params)
        except stripe.StripeError as e:
            raise StripeGatewayError(f"Stripe checkout session creation failed: {e}", code="stripe_error") from e
        if not s or not getattr(s, "id", None):
            raise StripeGatewayError("Stripe checkout session creation failed (no session id returned)", code="stripe_error")
        return CheckoutSession.from_stripe(s)

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        try:
            s = self._client.v1.checkout.sessions.retrieve(session_id)
        except stripe.StripeError as e:
            raise StripeGatewayError(f"Stripe checkout session lookup failed: {e}", code="stripe_error") from e
        return CheckoutSession.from_stripe(s)


def construct_event(payload: bytes, sig_header: str, secret: str):
    """Verify the Stripe-Signature header and parse the event.

    Raises ``stripe.SignatureVerificationError`` (or ``ValueError`` on bad JSON).
    Needs only the webhook secret, not an API key.
    """
    return stripe.Webhook.construct_event(payload, sig_header, secret)
