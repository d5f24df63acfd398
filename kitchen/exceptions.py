class KitchenError(Exception):
    """Base class for domain errors. ``status`` is the HTTP status the API answers with."""

    status = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationFailed(KitchenError):
    status = 400


class InvalidTransition(KitchenError):
    status = 409


class OrderNotFound(KitchenError):
    status = 404


class StaleOrder(KitchenError):
    """The order changed between read and conditional write."""

    status = 409


class DuplicateRecipient(KitchenError):
    status = 409


class RecipientNotFound(KitchenError):
    status = 404
