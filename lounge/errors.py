"""Engine error taxonomy.

Every engine failure is a ``LoungeError``; the HTTP layer renders them with
their ``status_code`` and ``code``. A rejected operation never leaves a
partial mutation behind: the unit of work rolls back before the error escapes.
"""


class LoungeError(Exception):
    status_code = 400
    code = "lounge_error"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context


class NotFound(LoungeError):
    status_code = 404
    code = "not_found"


class SeatUnavailable(LoungeError):
    status_code = 409
    code = "seat_unavailable"


class UnknownSeat(LoungeError):
    status_code = 404
    code = "unknown_seat"


class InvalidTransition(LoungeError):
    status_code = 409
    code = "invalid_transition"


class NoPricingRuleFound(LoungeError):
    status_code = 422
    code = "no_pricing_rule"


class InvalidPromotion(LoungeError):
    status_code = 422
    code = "invalid_promotion"


class InvalidPricingRule(LoungeError):
    status_code = 422
    code = "invalid_pricing_rule"


class InsufficientStock(LoungeError):
    status_code = 409
    code = "insufficient_stock"


class InvalidStockOperation(LoungeError):
    status_code = 422
    code = "invalid_stock_operation"


class OverpaymentNotAllowed(LoungeError):
    status_code = 422
    code = "overpayment_not_allowed"


class InvalidPayment(LoungeError):
    status_code = 422
    code = "invalid_payment"


class UnsettledPaymentBlocksCompletion(LoungeError):
    status_code = 409
    code = "unsettled_payment"


class CategoryMismatch(LoungeError):
    status_code = 422
    code = "category_mismatch"


class BookingTypeMismatch(LoungeError):
    status_code = 422
    code = "booking_type_mismatch"


class PersistenceConflict(LoungeError):
    status_code = 409
    code = "persistence_conflict"


class HistoryImmutable(LoungeError):
    status_code = 409
    code = "history_immutable"


class GroupOperationError(LoungeError):
    """Some members of a group operation failed; siblings were not rolled back."""
    status_code = 409
    code = "group_operation_failed"

    def __init__(self, action: str, succeeded: list[str], failures: dict[str, LoungeError]):
        super().__init__(f"{action} failed for {len(failures)} member(s)")
        self.action = action
        self.succeeded = succeeded
        self.failures = failures

    def as_dict(self) -> dict:
        return {
            "succeeded": list(self.succeeded),
            "failed": {
                booking_id: {"code": err.code, "detail": err.message}
                for booking_id, err in self.failures.items()
            },
        }


class InvalidBooking(LoungeError):
    status_code = 422
    code = "invalid_booking"
