import dataclasses  # tampering with frozen proofs
import pathlib  # locate repo root
import sys  # adjust import path for local modules
import threading  # concurrent sessions
import unittest  # unit test framework

ROOT = pathlib.Path(__file__).resolve().parents[1]  # repo root
sys.path.insert(0, str(ROOT))  # allow importing local modules
sys.path.insert(0, str(ROOT / "tests"))  # allow importing test fixture circuits

from circuits import fibonacci_circuit, identity_circuit, increment_circuit, secret_circuit, setup  # fixtures
from curve import PALLAS, VESTA  # tampering points
from errors import (  # driver failures
    CommitmentMismatchError,
    MissingPrivateInputError,
    SequenceError,
    SessionPoisonedError,
)
from field import Fr  # circuit field
from inputs import PrivateInput, zero_state  # step inputs
from nova import FoldingDriver, IVCVerifyError, RelaxedInstance, StepRecord, check_ivc, verify_ivc  # driver under test
from params import FoldingConfig, nova_setup  # prover knobs
from step_circuit import AugmentedStepCircuit  # augmented shape


def run(make_circuit, z_0, n, config=None, aux=None):  # (driver, handle, proof) after n steps.
    aug, pp = setup(make_circuit)
    driver = FoldingDriver(pp, aug, config)
    handle = driver.init(z_0)
    for _ in range(n):
        driver.step(handle, aux)
    return driver, handle, driver.finalize(handle)


class CompletenessTests(unittest.TestCase):  # Honest sessions verify.
    def test_identity_sessions(self):  # n in {1, 5, 50} verifies.
        for n in (1, 5, 50):
            driver, handle, proof = run(identity_circuit, [7], n)
            self.assertEqual(proof.step_count, n)
            self.assertEqual(proof.final_public_output, (Fr(7),))
            self.assertTrue(driver.verify_ivc(proof))
            check_ivc(driver.pp, proof)

    def test_increment(self):  # x + 1 three times.
        driver, handle, proof = run(increment_circuit, [0], 3)
        self.assertEqual(proof.final_public_output, (Fr(3),))
        self.assertEqual(handle.z_i, (Fr(3),))
        self.assertEqual([rec.index for rec in proof.steps], [0, 1, 2])
        self.assertEqual([rec.z_out for rec in proof.steps], [(Fr(1),), (Fr(2),), (Fr(3),)])
        self.assertTrue(verify_ivc(driver.pp, proof))

    def test_fibonacci(self):  # Two-element state over ten steps.
        driver, handle, proof = run(fibonacci_circuit, [0, 1], 10)
        self.assertEqual(proof.final_public_output, (Fr(55), Fr(89)))
        self.assertTrue(driver.verify_ivc(proof))

    def test_accumulator_stays_satisfied(self):  # Folded witness satisfies the relaxed relation.
        driver, handle, _ = run(fibonacci_circuit, [1, 1], 4)
        U, wit = handle.running, handle.witness
        self.assertTrue(driver.pp.shape.is_relaxed_satisfied([U.u, *U.x, *wit.W], wit.E))
        self.assertEqual(handle.snapshot(), U)

    def test_zero_steps(self):  # No folds leaves the empty accumulator.
        driver, handle, proof = run(identity_circuit, [3], 0)
        self.assertEqual(proof.steps, ())
        self.assertEqual(proof.running_instance, RelaxedInstance.zero(driver.pp.num_io))
        self.assertIsNone(proof.cyclefold_commitment)
        self.assertTrue(driver.verify_ivc(proof))

    def test_finalize_keeps_session_usable(self):  # Steps may continue after finalize.
        aug, pp = setup(increment_circuit)
        driver = FoldingDriver(pp, aug)
        handle = driver.init([10])
        driver.step(handle)
        first = driver.finalize(handle)
        driver.step(handle)
        second = driver.finalize(handle)
        self.assertTrue(driver.verify_ivc(first))
        self.assertTrue(driver.verify_ivc(second))
        self.assertEqual(second.steps[:1], first.steps)

    def test_commitment_views(self):  # Accumulator and per-step commitment accessors.
        driver, handle, proof = run(increment_circuit, [0], 2)
        self.assertEqual(proof.accumulated_instance_commitments, (handle.running.comm_W, handle.running.comm_E))
        self.assertEqual(len(proof.aux_commitments), 1 + 2 * 2)
        self.assertEqual(proof.aux_commitments[0], proof.cyclefold_commitment)


class SoundnessTests(unittest.TestCase):  # Tampered proofs are rejected.
    @classmethod
    def setUpClass(cls):  # Honest three-step increment proof.
        cls.driver, _, cls.proof = run(increment_circuit, [0], 3)

    def assertRejected(self, proof, reason):  # Both verifier forms reject, with the given reason.
        self.assertFalse(self.driver.verify_ivc(proof))
        with self.assertRaises(IVCVerifyError) as ctx:
            self.driver.check_ivc(proof)
        self.assertIn(reason, str(ctx.exception))

    def test_tampered_running_instance(self):  # Swapped accumulator commitments.
        U = self.proof.running_instance
        for field_name in ("comm_W", "comm_E"):
            bad = dataclasses.replace(U, **{field_name: PALLAS.generator})
            self.assertRejected(dataclasses.replace(self.proof, running_instance=bad), "running instance")
        bad = dataclasses.replace(U, u=U.u + 1)
        self.assertRejected(dataclasses.replace(self.proof, running_instance=bad), "running instance")

    def test_tampered_step_record(self):  # Altered step commitments or outputs.
        steps = list(self.proof.steps)
        steps[1] = dataclasses.replace(steps[1], comm_T=PALLAS.generator)
        self.assertRejected(dataclasses.replace(self.proof, steps=tuple(steps)), "running instance")
        steps = list(self.proof.steps)
        steps[1] = dataclasses.replace(steps[1], z_out=(Fr(5),))
        self.assertRejected(dataclasses.replace(self.proof, steps=tuple(steps)), "running instance")

    def test_tampered_output_and_secondary(self):  # Final output, secondary accumulator and z_0.
        self.assertRejected(dataclasses.replace(self.proof, final_public_output=(Fr(4),)), "final public output")
        self.assertRejected(dataclasses.replace(self.proof, cyclefold_commitment=VESTA.generator), "secondary")
        self.assertRejected(dataclasses.replace(self.proof, z_0=(Fr(1),)), "")

    def test_malformed_proofs(self):  # Structural errors are reported, not raised.
        self.assertRejected(dataclasses.replace(self.proof, step_count=2), "step_count")
        self.assertRejected(dataclasses.replace(self.proof, steps=tuple(reversed(self.proof.steps))), "out of order")
        self.assertRejected(dataclasses.replace(self.proof, z_0=(0,)), "z_0")
        self.assertRejected(dataclasses.replace(self.proof, cyclefold_commitment=(1, 1)), "vesta")
        self.assertRejected("not a proof", "IVCProof")

    def test_other_parameters(self):  # A proof only verifies under the parameters it was built with.
        aug = AugmentedStepCircuit(increment_circuit())
        other = nova_setup(aug, label=b"another-label")
        self.assertFalse(verify_ivc(other, self.proof))


class SequencingTests(unittest.TestCase):  # Step indices are strictly sequential.
    def test_skip_and_repeat(self):  # Out-of-order steps raise SequenceError and change nothing.
        aug, pp = setup(increment_circuit)
        driver = FoldingDriver(pp, aug)
        handle = driver.init([0])
        driver.step(handle, step_index=0)
        before = (handle.running, handle.step_index, list(handle.records))
        for wrong in (0, 2, 5):
            with self.assertRaises(SequenceError):
                driver.step(handle, step_index=wrong)
            self.assertEqual((handle.running, handle.step_index, list(handle.records)), before)
        self.assertIsNone(handle.poisoned)
        driver.step(handle, step_index=1)
        self.assertTrue(driver.verify_ivc(driver.finalize(handle)))

    def test_init_validation(self):  # State length and circuit must match the parameters.
        aug, pp = setup(fibonacci_circuit)
        driver = FoldingDriver(pp, aug)
        with self.assertRaises(ValueError):
            driver.init([1])
        other, _ = setup(increment_circuit)
        with self.assertRaises(ValueError):
            FoldingDriver(pp, other)

    def test_concurrent_sessions(self):  # Independent sessions fold in parallel threads.
        aug, pp = setup(increment_circuit)
        driver = FoldingDriver(pp, aug)
        handles = [driver.init([10 * k]) for k in range(3)]
        errors = []

        def work(h):
            try:
                for _ in range(3):
                    driver.step(h)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=work, args=(h,)) for h in handles]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(errors, [])
        for k, h in enumerate(handles):
            proof = driver.finalize(h)
            self.assertEqual(proof.final_public_output, (Fr(10 * k + 3),))
            self.assertTrue(driver.verify_ivc(proof))

    def test_racing_steps_on_one_session(self):  # Two callers claiming the same index: one wins.
        aug, pp = setup(increment_circuit)
        driver = FoldingDriver(pp, aug)
        handle = driver.init([0])
        outcomes = []

        def work():
            try:
                driver.step(handle, step_index=0)
                outcomes.append("ok")
            except SequenceError:
                outcomes.append("sequence")

        threads = [threading.Thread(target=work) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(sorted(outcomes), ["ok", "sequence"])
        self.assertEqual(handle.step_index, 1)


class ConfigTests(unittest.TestCase):  # Hiding, seeding, chaff and fatal errors.
    def test_seeded_runs_are_identical(self):  # Same seed, same bytes.
        cfg = FoldingConfig(hiding=True, seed=42)
        _, _, a = run(fibonacci_circuit, [0, 1], 3, cfg)
        _, _, b = run(fibonacci_circuit, [0, 1], 3, cfg)
        self.assertEqual(a.to_bytes(), b.to_bytes())
        _, _, c = run(fibonacci_circuit, [0, 1], 3, FoldingConfig(hiding=True, seed=43))
        self.assertNotEqual(a.to_bytes(), c.to_bytes())
        _, _, d = run(fibonacci_circuit, [0, 1], 3)
        _, _, e = run(fibonacci_circuit, [0, 1], 3)
        self.assertEqual(d.to_bytes(), e.to_bytes())

    def test_hiding_proofs_verify(self):  # Blinded proofs still verify.
        driver, _, proof = run(increment_circuit, [0], 2, FoldingConfig(hiding=True))
        self.assertTrue(driver.verify_ivc(proof))

    def test_from_env(self):  # GRAPEVINE_* variables map onto FoldingConfig.
        cfg = FoldingConfig.from_env({"GRAPEVINE_HIDING": "yes", "GRAPEVINE_SEED": "0x10", "GRAPEVINE_CHECK_FOLDS": "0"})
        self.assertEqual(cfg, FoldingConfig(hiding=True, seed=16, check_folds=False))
        self.assertEqual(FoldingConfig.from_env({}), FoldingConfig())
        with self.assertRaises(ValueError):
            FoldingConfig.from_env({"GRAPEVINE_HIDING": "maybe"})

    def test_private_inputs_and_chaff(self):  # Private inputs are required unless chaff is on.
        aug, pp = setup(secret_circuit)
        driver = FoldingDriver(pp, aug, FoldingConfig(seed=1))
        handle = driver.init(zero_state(1))
        with self.assertRaises(MissingPrivateInputError):
            driver.step(handle)
        self.assertIsNone(handle.poisoned)
        driver.step(handle, {"secret": 3})
        driver.step(handle, PrivateInput(chaff=True))
        proof = driver.finalize(handle)
        self.assertEqual(proof.steps[0].z_out, (Fr(9),))
        self.assertTrue(driver.verify_ivc(proof))

    def test_commitment_mismatch_poisons_session(self):  # A bad fold makes the session unusable.
        aug, pp = setup(increment_circuit)
        driver = FoldingDriver(pp, aug)
        handle = driver.init([0])
        driver.step(handle)
        handle.witness.W[0] += 1
        with self.assertRaises(CommitmentMismatchError):
            driver.step(handle)
        self.assertIsNotNone(handle.poisoned)
        self.assertEqual(handle.step_index, 1)
        with self.assertRaises(SessionPoisonedError):
            driver.step(handle)
        with self.assertRaises(SessionPoisonedError):
            driver.finalize(handle)

    def test_debug_events(self):  # Each fold emits a JSON debug record.
        aug, pp = setup(increment_circuit)
        driver = FoldingDriver(pp, aug)
        handle = driver.init([0])
        with self.assertLogs("nova", level="DEBUG") as logs:
            driver.step(handle)
        self.assertTrue(any('"location":"nova.py:step"' in line for line in logs.output))


if __name__ == "__main__":  # unittest entrypoint
    unittest.main()
