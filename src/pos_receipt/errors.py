class ReceiptError(Exception):
    """Base class for everything raised by the receipt pipeline."""


class BarcodeValidationError(ReceiptError, ValueError):
    def __init__(self, symbology, rule: str):
        self.symbology = symbology
        self.rule = rule
        name = getattr(symbology, "value", symbology)
        super().__init__(f"{name}: {rule}")


class ImageLoadError(ReceiptError):
    """The logo could not be fetched or decoded."""


class EncodingInvariantViolation(ReceiptError, RuntimeError):
    """Flattened buffer length disagrees with the sum of its segments. Always a bug."""
