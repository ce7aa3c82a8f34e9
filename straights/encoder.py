import asyncio
import zlib
from dataclasses import dataclass
from typing import Iterable, Optional

from .config import EncoderSettings
from .types import BoolGrid, NoteSet
from .utils import b64url_decode, b64url_encode, pack_bits, unpack_bits


RAW_HEADER = 0
ZLIB_HEADER = 1


@dataclass(frozen=True)
class EncodedState:
    base64_data: str
    count: int


class BitmaskEncoder:
    """Packs one note set per cell as a `size`-bit mask, optionally zlib compressed."""

    def __init__(self, settings: Optional[EncoderSettings] = None) -> None:
        self.settings = settings or EncoderSettings()

    def encode_uncompressed(self, size: int, cells: Iterable[Iterable[int]]) -> EncodedState:
        raw, count = self._pack(size, cells)
        return EncodedState(base64_data=b64url_encode(bytes([RAW_HEADER]) + raw), count=count)

    async def encode_async(self, size: int, cells: Iterable[Iterable[int]]) -> EncodedState:
        raw, count = self._pack(size, cells)
        if len(raw) >= self.settings.compression_threshold:
            compressed = await asyncio.to_thread(zlib.compress, raw, 9)
            if len(compressed) <= len(raw) * self.settings.min_compression_ratio:
                return EncodedState(base64_data=b64url_encode(bytes([ZLIB_HEADER]) + compressed), count=count)
        return EncodedState(base64_data=b64url_encode(bytes([RAW_HEADER]) + raw), count=count)

    def decode(self, encoded: EncodedState, size: int) -> list[NoteSet]:
        header, body = self._split(encoded)
        if header == ZLIB_HEADER:
            body = self._decompress(body)
        return self._unpack(body, encoded.count, size)

    async def decode_async(self, encoded: EncodedState, size: int) -> list[NoteSet]:
        header, body = self._split(encoded)
        if header == ZLIB_HEADER:
            body = await asyncio.to_thread(self._decompress, body)
        return self._unpack(body, encoded.count, size)

    def _pack(self, size: int, cells: Iterable[Iterable[int]]) -> tuple[bytes, int]:
        self._validate_size(size)
        bits: list[bool] = []
        count = 0
        for notes in cells:
            mask = [False] * size
            for digit in notes:
                if digit < 1 or digit > size:
                    raise ValueError(f"digit {digit} is out of range for size {size}")
                mask[digit - 1] = True
            bits.extend(mask)
            count += 1
        return pack_bits(bits), count

    def _unpack(self, body: bytes, count: int, size: int) -> list[NoteSet]:
        self._validate_size(size)
        if count < 0:
            raise ValueError("count must be >= 0")
        bits = unpack_bits(body, count * size)
        return [
            {digit for digit in range(1, size + 1) if bits[index * size + digit - 1]}
            for index in range(count)
        ]

    def _split(self, encoded: EncodedState) -> tuple[int, bytes]:
        data = b64url_decode(encoded.base64_data)
        if not data:
            raise ValueError("encoded state is empty")
        header = data[0]
        if header not in {RAW_HEADER, ZLIB_HEADER}:
            raise ValueError(f"unknown state encoding header {header}")
        return header, data[1:]

    def _validate_size(self, size: int) -> None:
        if size < 1 or size > self.settings.max_n:
            raise ValueError(f"size must be between 1 and {self.settings.max_n}")

    @staticmethod
    def _decompress(body: bytes) -> bytes:
        try:
            return zlib.decompress(body)
        except zlib.error as exc:
            raise ValueError(f"compressed state is corrupt: {exc}") from exc


def encode_grid_to_base64url(grid: BoolGrid) -> str:
    return b64url_encode(pack_bits([value for row in grid for value in row]))


def decode_grid_from_base64url(data: str, size: int) -> BoolGrid:
    bits = unpack_bits(b64url_decode(data), size * size)
    return [bits[row * size : (row + 1) * size] for row in range(size)]
