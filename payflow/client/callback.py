"""
Callback interpreter.

Turns the URL a gateway redirects back to into one of a fixed set of
outcomes, reconciling missing parameters against the pending-payment ledger.

States:
    VERIFYING -> SUCCESS | CANCELLED | MISSING_INFO | NETWORK_ISSUE | VERIFICATION_FAILED

SUCCESS and CANCELLED are terminal. The other three can be retried with
the same callback parameters.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Union
from urllib.parse import parse_qsl, quote, urlsplit

from payflow.client.ledger import PendingPaymentLedger
from payflow.core.config import settings
from payflow.core.errors import AppError
from payflow.features.billing.provider import NetworkError, ProviderUnavailable

logger = logging.getLogger("payflow")

REFERENCE_PARAMS = ("reference", "tx_ref", "trxref")


class CallbackState(str, Enum):
    VERIFYING = "verifying"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    MISSING_INFO = "missing_info"
    NETWORK_ISSUE = "network_issue"
    VERIFICATION_FAILED = "verification_failed"


TERMINAL_STATES = frozenset({CallbackState.SUCCESS, CallbackState.CANCELLED})
RETRYABLE_STATES = frozenset({
    CallbackState.MISSING_INFO,
    CallbackState.NETWORK_ISSUE,
    CallbackState.VERIFICATION_FAILED,
})
_SUPPORT_STATES = frozenset({CallbackState.NETWORK_ISSUE, CallbackState.VERIFICATION_FAILED})


@dataclass(frozen=True)
class CallbackOutcome:
    state: CallbackState
    reference: Optional[str] = None
    provider: Optional[str] = None
    plan: Optional[str] = None
    message: Optional[str] = None
    flagged: bool = False
    catalog_url: str = "/pricing"
    support_email: Optional[str] = None

    @property
    def can_retry(self) -> bool:
        return self.state in RETRYABLE_STATES

    @property
    def catalog_link(self) -> Optional[str]:
        if self.state in (CallbackState.SUCCESS, CallbackState.VERIFYING):
            return None
        return self.catalog_url

    @property
    def support_contact(self) -> Optional[str]:
        """mailto link pre-filled with the reference, for manual reconciliation."""
        if self.state not in _SUPPORT_STATES or not self.support_email:
            return None
        subject = f"Payment reference {self.reference}" if self.reference else "Payment issue"
        return f"mailto:{self.support_email}?subject={quote(subject)}"


def parse_callback(callback: Union[str, Mapping[str, str]]) -> Dict[str, str]:
    """Accept a full URL, a bare query string or an already-parsed mapping."""
    if isinstance(callback, Mapping):
        return {k: v for k, v in callback.items() if v is not None}
    query = urlsplit(callback).query if "?" in callback or "://" in callback else callback
    # First value wins when a parameter repeats
    params: Dict[str, str] = {}
    for key, value in parse_qsl(query.lstrip("?"), keep_blank_values=False):
        params.setdefault(key, value)
    return params


def is_cancelled(params: Mapping[str, str]) -> bool:
    return params.get("cancelled", "").lower() == "true" or params.get("status", "").lower() == "cancelled"


def _reference_from(params: Mapping[str, str]) -> Optional[str]:
    return next((params[name] for name in REFERENCE_PARAMS if params.get(name)), None)


VerifyFn = Callable[[str, str, Optional[str]], object]


class CallbackInterpreter:
    """
    Classifies a return from the gateway.

    Args:
        verify: Callable (reference, provider, transaction_id) returning an
            object with success / plan / message / flagged attributes.
            PaymentsClient.verify_payment fits.
        ledger: Pending-payment ledger
        catalog_url: Where the "choose a plan" link points
        support_email: Address for the support mailto link
    """

    def __init__(
        self,
        verify: VerifyFn,
        ledger: PendingPaymentLedger,
        catalog_url: str = "/pricing",
        support_email: Optional[str] = None,
    ):
        self.verify = verify
        self.ledger = ledger
        self.catalog_url = catalog_url
        self.support_email = support_email or settings.SUPPORT_EMAIL
        self.state = CallbackState.VERIFYING
        self.outcome: Optional[CallbackOutcome] = None
        self._params: Dict[str, str] = {}

    def _finish(self, state: CallbackState, **kwargs) -> CallbackOutcome:
        self.state = state
        self.outcome = CallbackOutcome(
            state=state,
            catalog_url=self.catalog_url,
            support_email=self.support_email,
            **kwargs,
        )
        logger.info(
            "callback.outcome",
            extra={"state": state.value, "reference": kwargs.get("reference"), "provider": kwargs.get("provider")},
        )
        return self.outcome

    def interpret(self, callback: Union[str, Mapping[str, str]]) -> CallbackOutcome:
        """Classify a callback URL. Always enters VERIFYING first."""
        self.state = CallbackState.VERIFYING
        self._params = parse_callback(callback)

        if is_cancelled(self._params):
            pending = self.ledger.consume()
            reference = _reference_from(self._params) or (pending.reference if pending else None)
            self._clear_ledger(pending, reference)
            return self._finish(
                CallbackState.CANCELLED,
                reference=reference,
                message="Payment was cancelled",
            )

        return self._resolve_and_verify()

    def retry(self) -> CallbackOutcome:
        """Re-run verification with the last callback parameters."""
        if self.outcome is not None and self.outcome.state in TERMINAL_STATES:
            return self.outcome
        self.state = CallbackState.VERIFYING
        return self._resolve_and_verify()

    def _clear_ledger(self, pending, reference: Optional[str]) -> None:
        # A bookmarked or back-navigated callback for an older attempt must
        # not wipe the entry of the checkout still in flight
        if pending is None or pending.reference == reference:
            self.ledger.clear()

    def _resolve_and_verify(self) -> CallbackOutcome:
        params = self._params
        pending = self.ledger.consume()

        reference = _reference_from(params)
        if not reference and pending:
            reference = pending.reference
        provider = params.get("provider") or (pending.provider if pending else None)
        transaction_id = params.get("transaction_id")

        if not reference or not provider:
            return self._finish(
                CallbackState.MISSING_INFO,
                reference=reference,
                provider=provider,
                message="We could not find the payment details for this checkout",
            )

        try:
            result = self.verify(reference, provider, transaction_id)
        except (NetworkError, ProviderUnavailable) as e:
            return self._finish(
                CallbackState.NETWORK_ISSUE,
                reference=reference,
                provider=provider,
                message=e.message,
            )
        except AppError as e:
            # Unknown reference is definitive; auth and other errors are not
            if e.status_code == 404:
                self._clear_ledger(pending, reference)
            return self._finish(
                CallbackState.VERIFICATION_FAILED,
                reference=reference,
                provider=provider,
                message=e.message,
            )

        if not getattr(result, "success", False):
            self._clear_ledger(pending, reference)
            return self._finish(
                CallbackState.VERIFICATION_FAILED,
                reference=reference,
                provider=provider,
                message=getattr(result, "message", None),
                flagged=bool(getattr(result, "flagged", False)),
            )

        self._clear_ledger(pending, reference)
        return self._finish(
            CallbackState.SUCCESS,
            reference=reference,
            provider=provider,
            plan=getattr(result, "plan", None),
            message=getattr(result, "message", None),
        )
