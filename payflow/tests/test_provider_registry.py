"""Provider registry: selection, credentials and adapter construction."""
import pytest

from payflow.core.config import settings
from payflow.core.errors import ValidationError
from payflow.features.billing import registry
from payflow.features.billing.flutterwave_provider import FlutterwaveProvider
from payflow.features.billing.paystack_provider import PaystackProvider
from payflow.features.billing.provider import ProviderUnavailable
from payflow.features.billing.registry import ProviderCredentials
from payflow.features.billing.stripe_provider import StripeProvider
from payflow.models.payment import ProviderName


def _creds(name, enabled, secret="sk"):
    return ProviderCredentials(name=name, enabled=enabled, public_key="pk", secret_key=secret)


def test_no_provider_selected_when_none_enabled():
    assert registry.select_enabled_provider() is None
    assert registry.billing_enabled() is False


def test_declared_order_breaks_ties():
    creds = [
        _creds(ProviderName.STRIPE, True),
        _creds(ProviderName.FLUTTERWAVE, True),
        _creds(ProviderName.PAYSTACK, False),
    ]
    assert registry.select_enabled_provider(creds) == ProviderName.FLUTTERWAVE


def test_enabled_without_secret_is_not_selectable():
    creds = [_creds(ProviderName.PAYSTACK, True, secret=None), _creds(ProviderName.STRIPE, True)]
    assert registry.select_enabled_provider(creds) == ProviderName.STRIPE


def test_load_credentials_reads_settings(paystack_enabled):
    creds = registry.load_credentials()
    assert [c.name for c in creds] == [ProviderName.PAYSTACK, ProviderName.FLUTTERWAVE, ProviderName.STRIPE]
    assert creds[0].usable
    assert not creds[1].usable


def test_get_provider_builds_enabled_adapter(paystack_enabled):
    assert isinstance(registry.get_provider(), PaystackProvider)


def test_get_provider_by_name(flutterwave_enabled, stripe_enabled):
    assert isinstance(registry.get_provider("flutterwave"), FlutterwaveProvider)
    assert isinstance(registry.get_provider(ProviderName.STRIPE), StripeProvider)


def test_get_provider_rejects_unknown_name(paystack_enabled):
    with pytest.raises(ValidationError):
        registry.get_provider("paypal")


def test_get_provider_without_any_enabled_is_unavailable():
    with pytest.raises(ProviderUnavailable) as exc:
        registry.get_provider()
    assert exc.value.code == "provider_unavailable"
    assert exc.value.status_code == 503


def test_disabled_provider_still_usable_for_verification(monkeypatch):
    monkeypatch.setattr(settings, "PAYSTACK_SECRET_KEY", "sk_test_paystack")
    with pytest.raises(ProviderUnavailable):
        registry.get_provider("paystack")
    assert isinstance(registry.get_provider("paystack", require_enabled=False), PaystackProvider)


def test_unconfigured_provider_unavailable_even_for_verification():
    with pytest.raises(ProviderUnavailable):
        registry.get_provider("stripe", require_enabled=False)


def test_describe_enabled_provider_never_leaks_secret(paystack_enabled):
    info = registry.describe_enabled_provider()
    assert info == {"enabled": True, "provider": "paystack", "public_key": "pk_test_paystack"}
    assert "sk_test_paystack" not in str(info)


def test_reference_prefixes():
    assert registry.reference_prefix("paystack") == "ps"
    assert registry.reference_prefix(ProviderName.FLUTTERWAVE) == "fw"
    assert registry.reference_prefix("Stripe") == "st"
