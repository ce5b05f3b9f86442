"""
Error taxonomy for Vantage.

The crud layer raises these; the FastAPI exception handlers in
``vantage.main`` turn them into the ``{success, data, error}`` envelope.
"""


class VantageError(Exception):
    code = "UNKNOWN"
    status_code = 500
    default_message = "Something went wrong."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPayloadError(VantageError):
    code = "INVALID_PAYLOAD"
    status_code = 422
    default_message = "Invalid payload."


class UnauthorizedError(VantageError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Unauthorized."


class NotFoundError(VantageError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found."


class DuplicateNameError(VantageError):
    code = "DUPLICATE_NAME"
    status_code = 409
    default_message = "Name already exists."


class DuplicateEmailError(VantageError):
    code = "DUPLICATE_EMAIL"
    status_code = 409
    default_message = "That email address is already in use."


class UnsupportedCurrencyPairError(VantageError):
    code = "UNSUPPORTED_CURRENCY_PAIR"
    status_code = 400
    default_message = "Transfers are only supported between USD and BIRR accounts."


class MissingExchangeRateError(VantageError):
    code = "MISSING_EXCHANGE_RATE"
    status_code = 400
    default_message = "An exchange rate is required for cross-currency transfers."


class InvalidExchangeRateError(VantageError):
    code = "INVALID_EXCHANGE_RATE"
    status_code = 400
    default_message = "Exchange rate must be a positive number."


class BalanceUpdateFailedError(VantageError):
    code = "BALANCE_UPDATE_FAILED"
    status_code = 409
    default_message = "Unable to update account balances."


class UnknownError(VantageError):
    pass
