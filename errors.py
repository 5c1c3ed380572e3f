"""
Errors raised by the order composer and the marketplace client.
"""


class OrderError(Exception):
    """Base class for every composer error."""


class OrderValidationError(OrderError):
    """The requested change would leave the order in an invalid state."""


class MissingSelectionError(OrderValidationError):
    pass


class InvalidQuantityError(OrderValidationError):
    pass


class CapacityError(OrderValidationError):
    def __init__(self, available: int):
        super().__init__(f"Only {available} items available")
        self.available = available


class InvalidPriceError(OrderValidationError):
    pass


class InvalidShippingFeeError(OrderValidationError):
    pass


class EmptyOrderError(OrderValidationError):
    pass


class LineNotFoundError(OrderValidationError):
    def __init__(self, index: int):
        super().__init__(f"No order line at position {index}")
        self.index = index


class SubmissionInProgressError(OrderError):
    pass


class SubmissionError(OrderError):
    """The order service rejected the order or could not be reached."""


class CatalogError(OrderError):
    """A marketplace lookup failed or returned an unusable response."""
