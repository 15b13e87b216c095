import json  # JSON tampering
import pathlib  # locate repo root
import sys  # adjust import path for local modules
import unittest  # unit test framework

ROOT = pathlib.Path(__file__).resolve().parents[1]  # repo root
sys.path.insert(0, str(ROOT))  # allow importing local modules
sys.path.insert(0, str(ROOT / "tests"))  # allow importing test fixture circuits

import proof_io  # codecs under test
from circuits import fibonacci_circuit, increment_circuit, setup  # fixtures
from curve import PALLAS  # locate encoded commitments
from decider import Decider, DeciderProof  # decider proofs
from errors import SerializationError, VersionMismatchError  # decode failures
from field import Fr  # circuit field
from nova import FoldingDriver, IVCProof, verify_ivc  # IVC proofs
from params import FoldingConfig  # prover knobs


def build(make_circuit, z_0, n, config=None):  # (pp, ivc proof, decider proof).
    aug, pp = setup(make_circuit)
    driver = FoldingDriver(pp, aug, config)
    handle = driver.init(z_0)
    for _ in range(n):
        driver.step(handle)
    return pp, driver.finalize(handle), Decider(pp).decide(handle)


class RoundTripTests(unittest.TestCase):  # deserialize(serialize(x)) == x.
    def test_ivc_and_decider_proofs(self):  # Binary and JSON round trips at n = 0 and 3.
        for n in (0, 3):
            pp, ivc, dec = build(fibonacci_circuit, [0, 1], n, FoldingConfig(hiding=True, seed=5))
            self.assertEqual(IVCProof.from_bytes(ivc.to_bytes()), ivc)
            self.assertEqual(DeciderProof.from_bytes(dec.to_bytes()), dec)
            self.assertEqual(proof_io.ivc_proof_from_json(proof_io.ivc_proof_to_json(ivc)), ivc)
            self.assertEqual(proof_io.decider_proof_from_json(proof_io.decider_proof_to_json(dec)), dec)

    def test_instance_and_public_state(self):  # Snapshot codecs.
        pp, ivc, _ = build(increment_circuit, [0], 2)
        U = ivc.running_instance
        self.assertEqual(proof_io.decode_instance(proof_io.encode_instance(U)), U)
        z = (Fr(1), Fr(-1))
        self.assertEqual(proof_io.decode_public_state(proof_io.encode_public_state(z)), z)
        self.assertEqual(proof_io.decode_public_state(proof_io.encode_public_state([1, -1])), z)

    def test_header(self):  # Magic, scheme and curve tags in both encodings.
        data = proof_io.encode_public_state([Fr(1)])
        self.assertEqual(data[:4], proof_io.MAGIC)
        self.assertIn(b"nova", data)
        self.assertIn(b"pallas/vesta", data)
        doc = json.loads(proof_io.ivc_proof_to_json(build(increment_circuit, [0], 1)[1]))
        self.assertEqual(
            (doc["version"], doc["scheme"], doc["curves"], doc["kind"]),
            (proof_io.FORMAT_VERSION, "nova", "pallas/vesta", "ivc_proof"),
        )


class MalformedInputTests(unittest.TestCase):  # Decoders reject bad input with typed errors.
    @classmethod
    def setUpClass(cls):  # Honest two-step increment proofs.
        cls.pp, cls.ivc, cls.dec = build(increment_circuit, [0], 2)
        cls.data = cls.ivc.to_bytes()

    def test_version_scheme_and_curve(self):  # Foreign tags raise VersionMismatchError.
        bad = bytearray(self.data)
        bad[4:6] = (proof_io.FORMAT_VERSION + 1).to_bytes(2, "little")
        with self.assertRaises(VersionMismatchError):
            IVCProof.from_bytes(bytes(bad))
        bad = self.data.replace(b"pallas/vesta", b"pallas/vestb", 1)
        with self.assertRaises(VersionMismatchError):
            IVCProof.from_bytes(bad)
        bad = self.data.replace(b"nova", b"hypr", 1)
        with self.assertRaises(VersionMismatchError):
            IVCProof.from_bytes(bad)
        doc = json.loads(proof_io.ivc_proof_to_json(self.ivc))
        doc["version"] = 0
        with self.assertRaises(VersionMismatchError):
            proof_io.ivc_proof_from_json(json.dumps(doc))

    def test_magic_kind_truncation_and_trailing(self):  # Framing errors raise SerializationError.
        with self.assertRaises(SerializationError):
            IVCProof.from_bytes(b"XXXX" + self.data[4:])
        with self.assertRaises(SerializationError):
            DeciderProof.from_bytes(self.data)
        with self.assertRaises(SerializationError):
            IVCProof.from_bytes(self.data + b"\x00")
        for cut in range(0, len(self.data), 7):
            with self.assertRaises(SerializationError):
                IVCProof.from_bytes(self.data[:cut])
        with self.assertRaises(SerializationError):
            IVCProof.from_bytes("not bytes")

    def test_non_canonical_scalar(self):  # Scalars >= p are rejected.
        z = proof_io.encode_public_state([Fr(0)])
        bad = z[:-32] + Fr.MODULUS.to_bytes(32, "little")
        with self.assertRaises(SerializationError):
            proof_io.decode_public_state(bad)

    def test_malformed_json(self):  # Bad documents raise SerializationError, never anything else.
        with self.assertRaises(SerializationError):
            proof_io.ivc_proof_from_json("[]")
        with self.assertRaises(SerializationError):
            proof_io.ivc_proof_from_json("{")
        doc = json.loads(proof_io.ivc_proof_to_json(self.ivc))
        with self.assertRaises(SerializationError):
            proof_io.decider_proof_from_json(json.dumps(doc))
        del doc["steps"]
        with self.assertRaises(SerializationError):
            proof_io.ivc_proof_from_json(json.dumps(doc))
        doc = json.loads(proof_io.ivc_proof_to_json(self.ivc))
        doc["z_0"] = [str(Fr.MODULUS)]
        with self.assertRaises(SerializationError):
            proof_io.ivc_proof_from_json(json.dumps(doc))
        for digits in ("²", "٣", "-1", " 1", ""):  # superscript two, Arabic-Indic three
            doc["z_0"] = [digits]
            with self.assertRaises(SerializationError):
                proof_io.ivc_proof_from_json(json.dumps(doc))
        doc = json.loads(proof_io.ivc_proof_to_json(self.ivc))
        doc["steps"] = {"0": doc["steps"][0]}
        with self.assertRaises(SerializationError):
            proof_io.ivc_proof_from_json(json.dumps(doc))
        doc = json.loads(proof_io.decider_proof_to_json(self.dec))
        doc["steps"][0]["z_out"] = ["²"]
        with self.assertRaises(SerializationError):
            proof_io.decider_proof_from_json(json.dumps(doc))
        doc = json.loads(proof_io.ivc_proof_to_json(self.ivc))
        doc["running_instance"]["comm_W"] = "00" * 63 + "01"
        with self.assertRaises(SerializationError):
            proof_io.ivc_proof_from_json(json.dumps(doc))


class EndToEndTests(unittest.TestCase):  # f(x) = x + 1 from z_0 = 0 for three steps.
    def test_single_byte_corruption_is_rejected(self):  # Flipping any commitment byte fails verify_ivc.
        pp, ivc, dec = build(increment_circuit, [0], 3)
        self.assertEqual(ivc.final_public_output, (Fr(3),))
        data = ivc.to_bytes()
        self.assertTrue(verify_ivc(pp, data))
        self.assertTrue(Decider(pp).verify_decider(dec.to_bytes(), [3]))
        commitments = list(ivc.accumulated_instance_commitments)
        commitments += [c for rec in ivc.steps for c in (rec.comm_W, rec.comm_T)]
        for P in [c for c in commitments if c is not None]:
            start = data.index(PALLAS.encode_point(P))
            for offset in range(0, 64, 5):
                bad = bytearray(data)
                bad[start + offset] ^= 0x01
                self.assertFalse(verify_ivc(pp, bytes(bad)))


if __name__ == "__main__":  # unittest entrypoint
    unittest.main()
