"""
Provider registry.

Resolves which gateway is usable from settings and builds its adapter.
Exactly one provider is exposed to checkout; when several qualify the
declared order (paystack, flutterwave, stripe) decides.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from payflow.core.config import Settings, settings
from payflow.core.errors import ValidationError
from payflow.features.billing.provider import PaymentProvider, ProviderUnavailable
from payflow.models.payment import ProviderName


PROVIDER_ORDER: List[ProviderName] = list(ProviderName)

REFERENCE_PREFIXES: Dict[ProviderName, str] = {
    ProviderName.PAYSTACK: "ps",
    ProviderName.FLUTTERWAVE: "fw",
    ProviderName.STRIPE: "st",
}


@dataclass(frozen=True)
class ProviderCredentials:
    name: ProviderName
    enabled: bool
    public_key: Optional[str]
    secret_key: Optional[str]

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.secret_key)

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)


def _settings(cfg: Optional[Settings]) -> Settings:
    return cfg if cfg is not None else settings


def load_credentials(cfg: Optional[Settings] = None) -> List[ProviderCredentials]:
    """Credentials for every known provider, in declared order."""
    s = _settings(cfg)
    creds = []
    for name in PROVIDER_ORDER:
        prefix = name.value.upper()
        creds.append(
            ProviderCredentials(
                name=name,
                enabled=bool(getattr(s, f"{prefix}_ENABLED", False)),
                public_key=getattr(s, f"{prefix}_PUBLIC_KEY", None) or None,
                secret_key=getattr(s, f"{prefix}_SECRET_KEY", None) or None,
            )
        )
    return creds


def select_enabled_provider(credentials: Optional[List[ProviderCredentials]] = None) -> Optional[ProviderName]:
    """First enabled provider with a secret key, or None."""
    creds = credentials if credentials is not None else load_credentials()
    by_name = {c.name: c for c in creds}
    for name in PROVIDER_ORDER:
        cred = by_name.get(name)
        if cred and cred.usable:
            return name
    return None


def billing_enabled() -> bool:
    """Check if any payment provider can take payments."""
    return select_enabled_provider() is not None


def parse_provider_name(name: Union[str, ProviderName]) -> ProviderName:
    """Validate a provider name against the closed set."""
    if isinstance(name, ProviderName):
        return name
    try:
        return ProviderName((name or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown payment provider: {name}")


def reference_prefix(name: Union[str, ProviderName]) -> str:
    return REFERENCE_PREFIXES[parse_provider_name(name)]


def _build(cred: ProviderCredentials, cfg: Settings) -> PaymentProvider:
    if cred.name == ProviderName.PAYSTACK:
        from payflow.features.billing.paystack_provider import PaystackProvider
        return PaystackProvider(cred.secret_key, base_url=cfg.PAYSTACK_BASE_URL)
    if cred.name == ProviderName.FLUTTERWAVE:
        from payflow.features.billing.flutterwave_provider import FlutterwaveProvider
        return FlutterwaveProvider(cred.secret_key, base_url=cfg.FLUTTERWAVE_BASE_URL)
    from payflow.features.billing.stripe_provider import StripeProvider
    return StripeProvider(cred.secret_key)


def get_provider(
    name: Optional[Union[str, ProviderName]] = None,
    *,
    require_enabled: bool = True,
) -> PaymentProvider:
    """
    Get a configured payment provider adapter.

    Args:
        name: Provider to build. Defaults to the single enabled provider.
        require_enabled: When False, a disabled provider that still has a
            secret key is returned (used to finish checkouts already started).

    Raises:
        ValidationError: Unknown provider name
        ProviderUnavailable: Provider disabled or missing credentials
    """
    cfg = _settings(None)
    creds = load_credentials(cfg)

    if name is None:
        selected = select_enabled_provider(creds)
        if selected is None:
            raise ProviderUnavailable("No payment provider is enabled")
        provider_name = selected
    else:
        provider_name = parse_provider_name(name)

    cred = next(c for c in creds if c.name == provider_name)
    if require_enabled and not cred.enabled:
        raise ProviderUnavailable(f"Payment provider {provider_name.value} is not enabled")
    if not cred.configured:
        raise ProviderUnavailable(f"Payment provider {provider_name.value} is not configured")

    return _build(cred, cfg)


def describe_enabled_provider() -> Dict[str, object]:
    """Public view of the usable provider. Never includes the secret key."""
    creds = load_credentials()
    selected = select_enabled_provider(creds)
    if selected is None:
        return {"enabled": False, "provider": None, "public_key": None}
    cred = next(c for c in creds if c.name == selected)
    return {"enabled": True, "provider": selected.value, "public_key": cred.public_key}
