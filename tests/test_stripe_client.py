from types import SimpleNamespace

import pytest
import stripe

from app.core.exceptions import PaymentConfigurationError, StripeGatewayError
from app.services.stripe_client import CheckoutSession, StripeClient, StripeConfig


class FakeSessions:
    """Stands in for ``stripe.StripeClient().v1.checkout.sessions`` and returns real SDK objects."""

    def __init__(self, error=None):
        self.error = error
        self.params = None
        self.retrieved = []

    def _session(self, session_id):
        return stripe.checkout.Session.construct_from({
            "id": session_id,
            "object": "checkout.session",
            "url": f"https://checkout.stripe.com/c/pay/{session_id}",
            "status": "open",
            "metadata": {"booking_id": "42", "operator_id": "7"},
        }, "sk_test_x")

    def create(self, params=None):
        if self.error:
            raise self.error
        self.params = params
        return self._session("cs_test_real")

    def retrieve(self, session_id):
        if self.error:
            raise self.error
        self.retrieved.append(session_id)
        return self._session(session_id)


def _client(sessions):
    client = StripeClient(StripeConfig(secret_key="sk_test_x"))
    client._sdk = SimpleNamespace(v1=SimpleNamespace(checkout=SimpleNamespace(sessions=sessions)))
    return client


def _create(client, **overrides):
    kwargs = dict(
        amount_minor=90000,
        currency="JOD",
        success_url="https://diver.example/ok",
        cancel_url="https://diver.example/cancel",
        metadata={"booking_id": 42, "operator_id": 7, "note": None},
        product_name="Cedar Pride, 2 divers",
        customer_email="rana@example.com",
    )
    kwargs.update(overrides)
    return client.create_checkout_session(**kwargs)


def test_create_reads_sdk_session_object():
    sessions = FakeSessions()
    cs = _create(_client(sessions))
    assert cs == CheckoutSession(id="cs_test_real", url="https://checkout.stripe.com/c/pay/cs_test_real", status="open")

    params = sessions.params
    assert params["mode"] == "payment"
    assert params["metadata"] == {"booking_id": "42", "operator_id": "7", "note": ""}
    assert params["customer_email"] == "rana@example.com"
    price = params["line_items"][0]["price_data"]
    assert price["currency"] == "jod"
    assert price["unit_amount"] == 90000


def test_create_without_email_or_description():
    sessions = FakeSessions()
    _create(_client(sessions), customer_email=None)
    assert "customer_email" not in sessions.params
    assert sessions.params["line_items"][0]["price_data"]["product_data"] == {"name": "Cedar Pride, 2 divers"}


def test_retrieve_reads_sdk_session_object():
    sessions = FakeSessions()
    cs = _client(sessions).retrieve_checkout_session("cs_test_existing")
    assert cs.id == "cs_test_existing"
    assert cs.status == "open"
    assert sessions.retrieved == ["cs_test_existing"]


@pytest.mark.parametrize("call", ["create", "retrieve"])
def test_stripe_errors_become_gateway_errors(call):
    client = _client(FakeSessions(error=stripe.APIConnectionError("network down")))
    with pytest.raises(StripeGatewayError) as exc:
        if call == "create":
            _create(client)
        else:
            client.retrieve_checkout_session("cs_test_existing")
    assert exc.value.code == "stripe_error"


def test_missing_secret_key_is_a_configuration_error():
    client = StripeClient(StripeConfig(secret_key="  "))
    with pytest.raises(PaymentConfigurationError) as exc:
        client.retrieve_checkout_session("cs_test_existing")
    assert exc.value.code == "stripe_not_configured"
