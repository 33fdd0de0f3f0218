"""
Payment provider protocol.

Defines the capability interface every gateway adapter implements
(Paystack, Flutterwave, Stripe) and the error taxonomy shared by the
initiator and verifier. This allows adding providers without changing
business logic.
"""
from typing import Protocol, Dict, Any, Optional
from dataclasses import dataclass, field
from decimal import Decimal

from payflow.core.errors import AppError


TRANSACTION_SUCCESS = "success"
TRANSACTION_FAILED = "failed"
TRANSACTION_PENDING = "pending"


@dataclass
class ProviderSession:
    """Hosted checkout created by a provider."""
    payment_url: str
    session_id: Optional[str] = None


@dataclass
class ProviderTransaction:
    """Normalized result of a provider status lookup."""
    status: str  # success, failed, pending
    amount: Optional[Decimal]  # major units
    currency: Optional[str]
    transaction_id: Optional[str] = None
    message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == TRANSACTION_SUCCESS


class PaymentProvider(Protocol):
    """
    Protocol for payment providers.

    Implementations must:
    - Create a hosted checkout for a single charge
    - Look up the status of a checkout by reference using the secret key
    - Translate gateway failures into the error taxonomy below
    """

    name: str

    def initiate(
        self,
        reference: str,
        email: str,
        amount: Decimal,
        currency: str,
        callback_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderSession:
        """
        Create a hosted checkout session.

        Args:
            reference: Unique reference for this attempt
            email: Customer email
            amount: Amount in major units
            currency: ISO-4217 currency code
            callback_url: Where the provider redirects the user afterwards
            metadata: Extra data stored with the transaction

        Returns:
            ProviderSession with the hosted checkout URL

        Raises:
            ProviderUnavailable, ProviderRejected, NetworkError
        """
        ...

    def verify(
        self,
        reference: str,
        transaction_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ProviderTransaction:
        """
        Look up a transaction by reference.

        Args:
            reference: Reference issued at initiation
            transaction_id: Secondary id some providers append to the callback
            session_id: Provider session id stored at initiation

        Returns:
            Normalized ProviderTransaction

        Raises:
            ProviderUnavailable, ProviderRejected, NetworkError
        """
        ...


class BillingProviderError(AppError):
    """Base exception for payment provider errors."""
    code = "provider_error"
    status_code = 502


class ProviderUnavailable(BillingProviderError):
    """Provider missing, disabled or misconfigured. Needs support, not retry."""
    code = "provider_unavailable"
    status_code = 503


class ProviderRejected(BillingProviderError):
    """Gateway refused the request. Needs changed input."""
    code = "provider_rejected"
    status_code = 502


class NetworkError(BillingProviderError):
    """Transport failure or timeout. Always retryable, never implies a charge."""
    code = "network_error"
    status_code = 503


class AmountMismatch(BillingProviderError):
    """Provider-reported amount/currency differs from the issued intent."""
    code = "amount_mismatch"
    status_code = 409
