import hashlib  # expected initial state
import pathlib  # locate repo root
import sys  # adjust import path for local modules
import unittest  # unit test framework


ROOT = pathlib.Path(__file__).resolve().parents[1]  # repo root
sys.path.insert(0, str(ROOT))  # allow importing local modules

from curve import PALLAS, VESTA  # point absorbs
from field import Fp, Fr  # challenge fields
from transcript import Blake2bTranscript  # transcript under test


class TranscriptTests(unittest.TestCase):  # Blake2b Fiat-Shamir transcript.
    def test_init_matches_blake2b_padded_label(self):  # State starts as H(label padded to 32 bytes).
        label = b"grapevine"
        expected = hashlib.blake2b(label + b"\x00" * (32 - len(label)), digest_size=32).digest()
        t = Blake2bTranscript.new(label)
        self.assertEqual(t.state, expected)
        self.assertEqual(t.n_rounds, 0)

    def test_label_constraints(self):  # Oversized labels are rejected.
        with self.assertRaises(ValueError):
            Blake2bTranscript.new(b"a" * 33)
        t = Blake2bTranscript.new(b"ok")
        with self.assertRaises(ValueError):
            t.raw_append_label_with_len(b"a" * 25, 0)

    def test_round_count_append_and_challenge(self):  # Each absorb and challenge block is one round.
        t = Blake2bTranscript.new(b"grapevine")
        t.append_u64(b"lbl", 7)
        self.assertEqual(t.n_rounds, 2)
        t.append_bytes(b"b", b"\x01\x02\x03")
        self.assertEqual(t.n_rounds, 4)
        t.append_point(b"P", PALLAS, PALLAS.generator)
        self.assertEqual(t.n_rounds, 6)
        t.append_scalars(b"xs", [Fr(1), Fr(2), Fr(3)])
        self.assertEqual(t.n_rounds, 10)
        _ = t.challenge_scalar()
        self.assertEqual(t.n_rounds, 11)
        _ = t.challenge_scalar_wide()
        self.assertEqual(t.n_rounds, 13)

    def test_scalar_challenge_reads_16_big_endian_bytes(self):  # challenge_scalar == Fr(be(challenge_bytes(16))).
        t_bytes = Blake2bTranscript.new(b"grapevine")
        t_fr = Blake2bTranscript.new(b"grapevine")
        b16 = t_bytes.challenge_bytes(16)
        self.assertEqual(t_fr.challenge_scalar(), Fr(int.from_bytes(b16, "big")))
        self.assertEqual(t_bytes.state, t_fr.state)
        self.assertEqual(t_bytes.n_rounds, t_fr.n_rounds)

    def test_challenges_depend_on_every_absorb(self):  # Different point encodings give different challenges.
        a = Blake2bTranscript.new(b"grapevine")
        b = Blake2bTranscript.new(b"grapevine")
        a.append_point(b"P", PALLAS, PALLAS.generator)
        b.append_point(b"P", VESTA, VESTA.generator)
        self.assertNotEqual(a.challenge_scalar(), b.challenge_scalar())

    def test_challenge_field_and_vector(self):  # Challenges land in the requested field.
        t = Blake2bTranscript.new(b"grapevine")
        x = t.challenge_scalar(Fp)
        self.assertIsInstance(x, Fp)
        self.assertLess(int(x), 1 << 128)
        xs = t.challenge_vector(3, Fr)
        self.assertEqual(len(xs), 3)
        self.assertTrue(all(isinstance(v, Fr) for v in xs))
        self.assertEqual(len(set(int(v) for v in xs)), 3)


if __name__ == "__main__":  # unittest entrypoint
    unittest.main()
