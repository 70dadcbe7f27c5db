"""
Barcode cleaning and GTIN format detection.
"""

import re
from typing import Any, Dict


class InvalidBarcodeError(ValueError):
    """Barcode is empty or contains something other than digits."""

    def __init__(self, message: str, barcode: str = ""):
        super().__init__(message)
        self.barcode = barcode


def clean_barcode(barcode: Any) -> str:
    """Strip whitespace and reject anything that is not a digit string."""
    if not isinstance(barcode, str):
        raise InvalidBarcodeError("Barcode must be a non-empty string", barcode=str(barcode))

    cleaned = re.sub(r"\s+", "", barcode)
    if not cleaned:
        raise InvalidBarcodeError("Barcode must be a non-empty string", barcode=barcode)
    if not cleaned.isdigit():
        raise InvalidBarcodeError(f"Barcode must contain only digits: {barcode!r}", barcode=barcode)
    return cleaned


def _gtin_checksum_ok(barcode: str) -> bool:
    """
    GS1 check digit: weights alternate 3, 1 starting from the digit next to
    the check digit. Covers EAN-8, UPC-A, EAN-13 and GTIN-14.
    """
    body, check = barcode[:-1], int(barcode[-1])
    total = 0
    for i, digit in enumerate(reversed(body)):
        weight = 3 if i % 2 == 0 else 1
        total += int(digit) * weight
    return (10 - (total % 10)) % 10 == check


GTIN_FORMATS = {
    8: "EAN-8",
    12: "UPC-A",
    13: "EAN-13",
    14: "GTIN-14",
}


def validate_barcode(barcode: str) -> Dict[str, Any]:
    """
    Detect the GTIN format of a cleaned barcode and verify its check digit.

    Returns a dict with is_valid, format_type and warnings. An invalid
    checksum is reported, not rejected: providers still index such codes.
    """
    format_type = GTIN_FORMATS.get(len(barcode), "unknown")
    warnings = []

    if format_type == "unknown":
        warnings.append(f"Unsupported barcode length: {len(barcode)}")
        is_valid = False
    else:
        is_valid = _gtin_checksum_ok(barcode)
        if not is_valid:
            warnings.append(f"Invalid {format_type} checksum")

    return {
        "is_valid": is_valid,
        "format_type": format_type,
        "warnings": warnings,
    }
