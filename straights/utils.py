import base64
import math


BASE64URL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
_ALPHABET_INDEX = {char: index for index, char in enumerate(BASE64URL_ALPHABET)}


def code_to_bits(code: str) -> str:
    groups: list[str] = []
    for char in code:
        index = _ALPHABET_INDEX.get(char)
        if index is None:
            raise ValueError(f"invalid character {char!r} in puzzle code")
        groups.append(format(index, "06b"))
    return "".join(groups)


def bits_per_number(size: int) -> int:
    if size < 2:
        raise ValueError("size must be at least 2")
    return math.floor(math.log2(size - 1)) + 1


def pack_bits(bits: list[bool]) -> bytes:
    packed = bytearray((len(bits) + 7) // 8)
    for index, bit in enumerate(bits):
        if bit:
            packed[index // 8] |= 0x80 >> (index % 8)
    return bytes(packed)


def unpack_bits(data: bytes, count: int) -> list[bool]:
    if count > len(data) * 8:
        raise ValueError(f"expected at least {count} bits but got {len(data) * 8}")
    return [bool(data[index // 8] & (0x80 >> (index % 8))) for index in range(count)]


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(text: str) -> bytes:
    stripped = text.rstrip("=")
    if any(char not in _ALPHABET_INDEX for char in stripped):
        raise ValueError("data is not valid base64url")
    return base64.urlsafe_b64decode(stripped + "=" * (-len(stripped) % 4))


def format_grid_rows(rows: list[list[object]]) -> list[str]:
    return [" ".join(str(value) for value in row) for row in rows]
