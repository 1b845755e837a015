"""
Literal formatting for Constant rows (field literals, parameter defaults).

Text is culture-invariant: booleans ``True``/``False``, integers in
decimal, reals in shortest round-trip form with ``E±NN`` exponents,
strings ``"…"`` and chars ``'…'``.  A null reference renders
``default(<Type>)`` when the declared type is a value type, else ``null``.
"""
import math
import struct
from typing import Optional, Tuple

from api_listing.core.errors import UnsupportedMetadataError
from api_listing.core.signatures import ElementType, TypeSig
from api_listing.core.type_names import GenericScope, EMPTY_SCOPE, format_type

_INTEGER_FORMATS = {
    ElementType.I1: "<b",
    ElementType.U1: "<B",
    ElementType.I2: "<h",
    ElementType.U2: "<H",
    ElementType.I4: "<i",
    ElementType.U4: "<I",
    ElementType.I8: "<q",
    ElementType.U8: "<Q",
}

# Largest decimal exponent printed positionally, per real width.
_SCIENTIFIC_FROM = {ElementType.R4: 7, ElementType.R8: 15}


def _unpack(fmt: str, value: bytes):
    try:
        return struct.unpack(fmt, value[:struct.calcsize(fmt)])[0]
    except struct.error as exc:
        raise UnsupportedMetadataError(f"constant blob too short for {fmt}") from exc


def _shortest_digits(value: float, single: bool) -> Tuple[str, int]:
    """Return (significant digits, decimal exponent of the first digit) for |value|."""
    for precision in range(1, 18):
        text = f"{value:.{precision - 1}e}"
        parsed = float(text)
        if single:
            parsed = struct.unpack("<f", struct.pack("<f", parsed))[0]
        if parsed == value:
            break
    mantissa, exponent = text.split("e")
    digits = mantissa.replace(".", "").rstrip("0") or "0"
    return digits, int(exponent)


def format_real(value: float, single: bool = False) -> str:
    """Format a real the way invariant-culture round-trip formatting does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign = "-" if value < 0 else ""
    digits, exponent = _shortest_digits(abs(value), single)
    threshold = _SCIENTIFIC_FROM[ElementType.R4 if single else ElementType.R8]

    if exponent >= threshold or exponent < -4:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return f"{sign}{mantissa}E{'+' if exponent >= 0 else '-'}{abs(exponent):02d}"
    if exponent < 0:
        return f"{sign}0.{'0' * (-exponent - 1)}{digits}"

    whole = digits[:exponent + 1].ljust(exponent + 1, "0")
    fraction = digits[exponent + 1:]
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


def format_literal(
    element: int,
    value: bytes,
    declared: Optional[TypeSig] = None,
    scope: GenericScope = EMPTY_SCOPE,
) -> str:
    """
    Format one Constant row.

    *element* is the row's Type column, *value* its blob, *declared* the
    type of the field or parameter that owns it.

    Raises
    ------
    UnsupportedMetadataError
        For constant kinds that have no literal form.
    """
    if element == ElementType.CLASS:
        if declared is not None and declared.value_type:
            return f"default({format_type(declared, scope)})"
        return "null"
    if element == ElementType.STRING:
        return '"' + value.decode("utf-16-le", errors="surrogatepass") + '"'
    if element == ElementType.CHAR:
        return "'" + chr(_unpack("<H", value)) + "'"
    if element == ElementType.BOOLEAN:
        return "True" if _unpack("<B", value) else "False"
    if element in _INTEGER_FORMATS:
        return str(_unpack(_INTEGER_FORMATS[element], value))
    if element == ElementType.R4:
        return format_real(_unpack("<f", value), single=True)
    if element == ElementType.R8:
        return format_real(_unpack("<d", value))

    raise UnsupportedMetadataError(f"unsupported constant type {element:#04x}")
