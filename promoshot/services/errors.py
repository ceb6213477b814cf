from __future__ import annotations


class PromoShotError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthorized(PromoShotError):
    status_code = 401

    def __init__(self, message: str = 'Unauthorized') -> None:
        super().__init__(message)


class ValidationError(PromoShotError):
    status_code = 400


class InsufficientCredits(PromoShotError):
    status_code = 400

    def __init__(self, message: str = 'Insufficient credits') -> None:
        super().__init__(message)


class UpstreamGatewayError(PromoShotError):
    pass


class StorageError(PromoShotError):
    pass


class PersistenceError(PromoShotError):
    pass
