import pathlib  # locate repo root
import random  # deterministic chaff
import sys  # adjust import path for local modules
import unittest  # unit test framework

ROOT = pathlib.Path(__file__).resolve().parents[1]  # repo root
sys.path.insert(0, str(ROOT))  # allow importing local modules

from errors import ArithmetizationError, MissingPrivateInputError  # marshalling failures
from field import Fr  # circuit field
from inputs import (  # helpers under test
    MAX_SECRET_LENGTH,
    SECRET_FIELD_LENGTH,
    PrivateInput,
    pack_phrase,
    pack_username,
    random_field_element,
    zero_state,
)


class PackingTests(unittest.TestCase):  # String packing into field elements.
    def test_pack_phrase_chunks(self):  # 31-byte big-endian chunks with a leading zero.
        phrase = "a" * 31 + "b"
        out = pack_phrase(phrase)
        self.assertEqual(len(out), SECRET_FIELD_LENGTH)
        self.assertEqual(out[0], Fr(int.from_bytes(b"\x00" + b"a" * 31, "big")))
        self.assertEqual(out[1], Fr(int.from_bytes(b"\x00b" + b"\x00" * 30, "big")))
        self.assertTrue(all(x.is_zero() for x in out[2:]))
        self.assertEqual(pack_phrase(phrase.encode()), out)

    def test_pack_phrase_length_limit(self):  # Longest allowed phrase fits, one more byte fails.
        self.assertEqual(len(pack_phrase("x" * MAX_SECRET_LENGTH)), SECRET_FIELD_LENGTH)
        with self.assertRaises(ValueError):
            pack_phrase("x" * (MAX_SECRET_LENGTH + 1))

    def test_pack_username(self):  # Single left-aligned field element.
        self.assertEqual(pack_username(""), Fr.zero())
        self.assertEqual(pack_username("ab"), Fr(int.from_bytes(b"\x00ab" + b"\x00" * 29, "big")))
        self.assertNotEqual(pack_username("ab"), pack_username("ba"))
        with self.assertRaises(ValueError):
            pack_username("u" * 31)

    def test_zero_state_and_random(self):  # Zero vector and seeded randomness.
        self.assertEqual(zero_state(3), (Fr.zero(),) * 3)
        rng = random.Random(3)
        self.assertEqual(random_field_element(random.Random(3)), random_field_element(rng))


class PrivateInputTests(unittest.TestCase):  # Marshalling named private inputs.
    DECLARED = (("secret", 1), ("path", 2))

    def test_marshal_values(self):  # Scalars and lists become field lists.
        p = PrivateInput({"secret": 5, "path": [1, Fr(-1)]})
        self.assertEqual(p.marshal(self.DECLARED), {"secret": [5], "path": [1, Fr.MODULUS - 1]})

    def test_uninitialized(self):  # Empty input without chaff is an error.
        self.assertTrue(PrivateInput().uninitialized())
        self.assertFalse(PrivateInput(chaff=True).uninitialized())
        with self.assertRaises(MissingPrivateInputError) as ctx:
            PrivateInput().marshal(self.DECLARED)
        self.assertIn("No private input provided", str(ctx.exception))
        self.assertTrue(issubclass(MissingPrivateInputError, ArithmetizationError))
        self.assertEqual(PrivateInput().marshal(()), {})

    def test_missing_or_misshaped(self):  # Missing names and wrong lengths are rejected.
        with self.assertRaises(MissingPrivateInputError):
            PrivateInput({"secret": 5}).marshal(self.DECLARED)
        with self.assertRaises(MissingPrivateInputError):
            PrivateInput({"secret": 5, "path": [1]}).marshal(self.DECLARED)

    def test_chaff_fills_missing(self):  # Chaff fills gaps reproducibly.
        out = PrivateInput({"secret": 5}, chaff=True).marshal(self.DECLARED, random.Random(0))
        self.assertEqual(out["secret"], [5])
        self.assertEqual(len(out["path"]), 2)
        again = PrivateInput({"secret": 5}, chaff=True).marshal(self.DECLARED, random.Random(0))
        self.assertEqual(out, again)


if __name__ == "__main__":  # unittest entrypoint
    unittest.main()
