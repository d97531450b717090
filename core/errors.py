from typing import Optional


class AppError(Exception):
    """Base of every error the core raises towards a caller."""
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    default_message = "Invalid request"


class DuplicateEmailError(AppError):
    default_message = "An account with this email already exists"


class AuthenticationRequiredError(AppError):
    default_message = "Not authenticated"


class InvalidCredentialError(AppError):
    # same text for unknown email and wrong secret
    default_message = "Incorrect email or password"


class AccountDisabledError(InvalidCredentialError):
    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        message = "Account disabled"
        if reason:
            message = f"Account disabled: {reason}"
        super().__init__(message)


class ForbiddenError(AppError):
    default_message = "Access denied"


class AdminAlreadyExistsError(ForbiddenError):
    default_message = "An admin already exists"


class NotFoundError(AppError):
    default_message = "Not found"


class InvalidSignatureError(AppError):
    default_message = "Invalid signature"


class UnknownOrderError(AppError):
    default_message = "Payment could not be verified"


class InvalidTransitionError(AppError):
    default_message = "Payment is no longer pending"


class AlreadyCompletedError(InvalidTransitionError):
    default_message = "Payment already completed"


class UpstreamGatewayError(AppError):
    default_message = "Payment service unavailable, please retry"


class GatewayNotConfiguredError(UpstreamGatewayError):
    default_message = "Payment system not configured"
