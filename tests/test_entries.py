import unittest

from numbersdraw.entries import EntryFormatError, decode_entry, encode_entry, matches


class EntryEncodingTestCase(unittest.TestCase):
    def test_encode_known_values(self):
        self.assertEqual(encode_entry([1, 2, 3]), 3010203)
        self.assertEqual(encode_entry([45]), 145)
        self.assertEqual(encode_entry([0, 99]), 20099)
        self.assertEqual(
            encode_entry([1, 2, 3, 4, 5, 6, 7, 8, 9]), 9010203040506070809
        )

    def test_decode_reverses_encode(self):
        self.assertEqual(decode_entry(6010203040506), [1, 2, 3, 4, 5, 6])
        self.assertEqual(decode_entry(3450112), [45, 1, 12])
        self.assertEqual(decode_entry(encode_entry([0, 99])), [0, 99])

    def test_encode_rejects_bad_picks(self):
        bad_inputs = [[], list(range(10)), [100], [-1], [1.5], [True]]
        for picks in bad_inputs:
            with self.subTest(picks=picks):
                with self.assertRaises(EntryFormatError):
                    encode_entry(picks)

    def test_decode_rejects_malformed_entries(self):
        for value in [0, -3010203, 301020, 30102030, "3010203", False]:
            with self.subTest(value=value):
                with self.assertRaises(EntryFormatError):
                    decode_entry(value)

    def test_decode_names_count_mismatch(self):
        # valid ledger entry, but the count digit says 6 while 7 picks follow
        with self.assertRaisesRegex(EntryFormatError, "declares 6 picks but carries 7"):
            decode_entry(601020304050607)
        with self.assertRaisesRegex(EntryFormatError, "odd number"):
            decode_entry(30102030)

    def test_entry_format_error_is_value_error(self):
        self.assertTrue(issubclass(EntryFormatError, ValueError))

    def test_matches_counts_shared_picks(self):
        entry = encode_entry([3, 9, 15, 22, 31, 44])
        self.assertEqual(matches(entry, [3, 9, 15, 22, 31, 44]), 6)
        self.assertEqual(matches(entry, [1, 9, 16, 22, 30, 45]), 2)
        self.assertEqual(matches(entry, []), 0)


if __name__ == "__main__":
    unittest.main()
