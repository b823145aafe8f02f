from __future__ import annotations


class ShopbotError(Exception):
    """Base class for errors raised by the ordering engine."""


class ValidationError(ShopbotError):
    pass


class EmptyCartError(ValidationError):
    pass


class NotFoundError(ShopbotError):
    pass


class ExternalServiceError(ShopbotError):
    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class SignatureVerificationError(ShopbotError):
    pass


class ConfigurationError(ShopbotError):
    pass
