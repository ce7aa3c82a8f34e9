import unittest

from straights.config import EncoderSettings
from straights.encoder import (
    RAW_HEADER,
    ZLIB_HEADER,
    BitmaskEncoder,
    EncodedState,
    decode_grid_from_base64url,
    encode_grid_to_base64url,
)
from straights.envelope import to_cell_user_data
from straights.utils import b64url_decode


class TestBitmaskEncoder(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.encoder = BitmaskEncoder()

    def test_uncompressed_round_trip(self) -> None:
        cells = [{5}, {1, 3}, set()]

        encoded = self.encoder.encode_uncompressed(9, cells)
        decoded = self.encoder.decode(encoded, 9)

        self.assertEqual(encoded.count, 3)
        self.assertEqual(decoded, [{5}, {1, 3}, set()])
        self.assertEqual(b64url_decode(encoded.base64_data)[0], RAW_HEADER)

    def test_singleton_note_set_reads_as_guess(self) -> None:
        decoded = self.encoder.decode(self.encoder.encode_uncompressed(9, [{5}, {1, 3}, set()]), 9)
        user_data = [to_cell_user_data(notes) for notes in decoded]

        self.assertEqual(user_data[0].guess, 5)
        self.assertEqual(user_data[0].notes, frozenset())
        self.assertIsNone(user_data[1].guess)
        self.assertEqual(user_data[1].notes, frozenset({1, 3}))
        self.assertIsNone(user_data[2].guess)

    def test_uses_no_padding_characters(self) -> None:
        encoded = self.encoder.encode_uncompressed(4, [{1, 2}])
        self.assertNotIn("=", encoded.base64_data)

    async def test_async_encoding_compresses_large_payloads(self) -> None:
        cells = [set(range(1, 10)) for _ in range(200)]

        encoded = await self.encoder.encode_async(9, cells)
        decoded = await self.encoder.decode_async(encoded, 9)

        self.assertEqual(b64url_decode(encoded.base64_data)[0], ZLIB_HEADER)
        self.assertLess(len(encoded.base64_data), len(self.encoder.encode_uncompressed(9, cells).base64_data))
        self.assertEqual(decoded, cells)
        self.assertEqual(self.encoder.decode(encoded, 9), cells)

    async def test_async_encoding_keeps_small_payloads_raw(self) -> None:
        encoded = await self.encoder.encode_async(9, [{5}, {1, 3}, set()])
        self.assertEqual(b64url_decode(encoded.base64_data)[0], RAW_HEADER)
        self.assertEqual(encoded, self.encoder.encode_uncompressed(9, [{5}, {1, 3}, set()]))

    async def test_async_encoding_requires_compression_ratio(self) -> None:
        encoder = BitmaskEncoder(EncoderSettings(compression_threshold=1, min_compression_ratio=0.01))
        cells = [set(range(1, 10)) for _ in range(200)]

        encoded = await encoder.encode_async(9, cells)

        self.assertEqual(b64url_decode(encoded.base64_data)[0], RAW_HEADER)
        self.assertEqual(await encoder.decode_async(encoded, 9), cells)

    def test_decode_rejects_malformed_data(self) -> None:
        bad_inputs = [
            EncodedState(base64_data="", count=0),
            EncodedState(base64_data="Ag", count=0),
            EncodedState(base64_data="A*", count=1),
            EncodedState(base64_data="AA", count=5),
            EncodedState(base64_data="AQ", count=1),
        ]
        for encoded in bad_inputs:
            with self.subTest(data=encoded.base64_data):
                with self.assertRaises(ValueError):
                    self.encoder.decode(encoded, 9)

    def test_rejects_out_of_range_values(self) -> None:
        with self.assertRaises(ValueError):
            self.encoder.encode_uncompressed(4, [{5}])
        with self.assertRaises(ValueError):
            self.encoder.encode_uncompressed(0, [])
        with self.assertRaises(ValueError):
            self.encoder.encode_uncompressed(32, [])


class TestBooleanGridCodec(unittest.TestCase):
    def test_encodes_row_major_bits(self) -> None:
        self.assertEqual(encode_grid_to_base64url([[True, False], [False, True]]), "kA")

    def test_decodes_with_or_without_padding(self) -> None:
        expected = [[True, False], [False, True]]
        self.assertEqual(decode_grid_from_base64url("kA", 2), expected)
        self.assertEqual(decode_grid_from_base64url("kA==", 2), expected)

    def test_decode_rejects_short_data(self) -> None:
        with self.assertRaises(ValueError):
            decode_grid_from_base64url("kA", 4)


if __name__ == "__main__":
    unittest.main()
