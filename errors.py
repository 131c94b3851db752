class AppError(Exception):
    """An error that is safe to show to the client."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource


class ExternalServiceError(AppError):
    status_code = 502

    def __init__(self, service: str):
        super().__init__(f"{service} is currently unavailable. Please try again later.")
        self.service = service


class CheckoutSessionError(Exception):
    """The payment provider answered without a usable checkout session."""
