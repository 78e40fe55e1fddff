"""Exceptions raised by the order-intake pipeline.

Every exception carries the HTTP status and the message that is safe to show
to the shopper. Internal detail (which blocking rule tripped, raw Admin API
errors) stays on the exception attributes and in the logs.
"""
from typing import List, Optional


class CodformError(Exception):
    """Base exception for all pipeline errors."""

    status_code: int = 500
    public_message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.public_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"success": False, "error": self.message}


class AuthenticationError(CodformError):
    """Raised when an app proxy request has a missing or invalid signature."""

    status_code = 401
    public_message = "Authentication failed."

    def __init__(self, reason: str = "invalid signature"):
        self.reason = reason
        super().__init__()


class MissingShopError(CodformError):
    """Raised when the proxied request carries no shop parameter."""

    status_code = 400
    public_message = "Shop parameter is missing."


class AppNotInstalledError(CodformError):
    """Raised when no settings (and no install session) exist for the shop."""

    status_code = 403
    public_message = "App not installed. Please install the app first."

    def __init__(self, shop: str):
        self.shop = shop
        super().__init__()

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["redirectToInstall"] = True
        return payload


class ShopNotConnectedError(CodformError):
    """Raised when there is no Admin API access token stored for the shop."""

    status_code = 401
    public_message = "Could not authenticate with Shopify. Please reinstall the app."

    def __init__(self, shop: str):
        self.shop = shop
        super().__init__()


class EligibilityMiss(CodformError):
    """Raised when the form is not eligible for this request.

    Rendered as an empty 204, never as an error to the shopper.
    """

    status_code = 204
    public_message = ""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class BlockedError(CodformError):
    """Raised when a blocking rule rejects a submission.

    ``message`` is always the shop-configured text; ``rule`` is for logs only.
    """

    status_code = 403

    def __init__(self, message: str, rule: str, risk_score: Optional[int] = None):
        self.rule = rule
        self.risk_score = risk_score
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.risk_score is not None:
            payload["riskScore"] = self.risk_score
        return payload


class SubmissionError(CodformError):
    """Raised when the submitted form cannot be parsed."""

    status_code = 400
    public_message = "Invalid order data."

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__()


class OrderValidationError(CodformError):
    """Raised when the Admin API rejects the draft order with user errors."""

    status_code = 400

    def __init__(self, user_errors: List[dict]):
        self.user_errors = user_errors
        first = user_errors[0].get("message") if user_errors else None
        super().__init__(first or "Your order could not be created.")


class FinalizationFailure(CodformError):
    """Raised when a draft order was created but could not be completed.

    The draft now exists in Shopify without a local record and needs manual
    reconciliation.
    """

    status_code = 500
    public_message = "Your order was received but could not be finalized. Please contact support."

    def __init__(self, shop: str, draft_order_id: str, errors: Optional[List[str]] = None):
        self.shop = shop
        self.draft_order_id = draft_order_id
        self.errors = errors or []
        super().__init__()


class TransportError(CodformError):
    """Raised on network, timeout or malformed responses from an external service."""

    status_code = 500
    public_message = "An unexpected error occurred."

    def __init__(self, service: str, detail: str):
        self.service = service
        self.detail = detail
        super().__init__()

    def __str__(self) -> str:
        return f"{self.service}: {self.detail}"
