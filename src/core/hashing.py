"""
32-bit integer helpers for the string hashes.

Both browsers must compute the same numbers, so these follow JavaScript's int32 arithmetic on UTF-16 strings.
"""

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_int32(value: int) -> int:
    """Wrap to a signed 32-bit integer (JavaScript's ToInt32 for integral values)."""
    value %= 2**32
    return value - 2**32 if value >= 2**31 else value


def utf16_code_units(text: str) -> list[int]:
    """The code units JavaScript's charCodeAt walks over (characters outside the BMP count twice)."""
    encoded = text.encode("utf-16-le", errors="surrogatepass")
    return [int.from_bytes(encoded[i : i + 2], "little") for i in range(0, len(encoded), 2)]


def string_hash(text: str) -> int:
    """hash = hash * 31 + code, kept to 32 bits"""
    hash_value = 0
    for code in utf16_code_units(text):
        hash_value = to_int32((hash_value << 5) - hash_value + code)
    return hash_value


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_DIGITS[remainder])
    return sign + "".join(reversed(digits))
