"""Decider: a proof that a session's replayed accumulator is satisfiable.

For the relaxed instance `U = (comm_W, comm_E, u, x)` the prover shows
`(A z) o (B z) = u (C z) + E` with `z = (W, u, x)`:

1. outer sumcheck (degree 3) of `eq(tau, X) (Az Bz - u Cz - E)(X)` = 0,
   reducing to claims `Az(rx), Bz(rx), Cz(rx), E(rx)`;
2. inner sumcheck (degree 2) of `(A + g B + g^2 C)(rx, Y) z(Y)`, reducing
   to `z(ry)`, which splits into the committed `W(ry')` and the public
   `(u, x)` half the verifier evaluates itself;
3. IPA openings of `comm_W` at `ry'` and `comm_E` at `rx`.

Columns are laid out as `[W (padded to N) | u, x, 0...]` so the top bit of a
column index separates the committed and public halves.

The proof carries the public step records. The verifier replays them from
`z_0` to re-derive `U` and `z_n`, so a proof only verifies for the output its
folds actually reached; the Spartan and IPA part is linear in the circuit size
and independent of the number of folded steps, and so is `decide`. The
statement `(step_count, z_0, z_n, U)` seeds the transcript.
"""

from __future__ import annotations

import logging  # module logger
import time  # decider timing
from dataclasses import dataclass  # proof container

import ipa  # commitment openings
from debuglog import debug_event  # NDJSON debug records
from errors import CommitmentMismatchError, DeciderCompileError, SerializationError  # decider failures
from field import Fr  # circuit scalar field
from ipa import IPAProof, IPAVerifyError  # opening proofs
from nova import IVCVerifyError, RelaxedInstance, check_ivc, replay_folds  # accumulator + replay verifier
from polynomials import EqPolynomial, log2_pow2, mle_evaluate, pad_to  # multilinear helpers
from sumcheck import SumcheckInstanceProof, SumcheckVerifyError  # sumcheck rounds
from transcript import Blake2bTranscript  # Fiat-Shamir

logger = logging.getLogger(__name__)

class DeciderVerifyError(Exception):  # Decider proof rejected (message is the reason).
    pass

@dataclass(frozen=True)
class DeciderProof:  # Statement plus the Spartan/IPA argument for its accumulator.
    step_count: int
    z_0: tuple
    z_n: tuple
    instance: RelaxedInstance
    steps: tuple  # public StepRecords; the verifier replays them to re-derive instance and z_n
    outer: SumcheckInstanceProof
    outer_claims: tuple  # (Az(rx), Bz(rx), Cz(rx), E(rx))
    inner: SumcheckInstanceProof
    eval_W: Fr
    ipa_W: IPAProof
    ipa_E: IPAProof

    def to_bytes(self):
        from proof_io import encode_decider_proof  # local import to keep module dependency minimal

        return encode_decider_proof(self)

    @classmethod
    def from_bytes(cls, data):
        from proof_io import decode_decider_proof  # local import to keep module dependency minimal

        return decode_decider_proof(data)

class SpartanShape:  # Augmented R1CS re-indexed into the [W | u, x] column layout.
    def __init__(self, pp):
        shape = pp.shape
        self.num_io = shape.num_io
        self.n_w, self.n_e = len(pp.ck_W), len(pp.ck_E)
        self.log_w, self.log_e = log2_pow2(self.n_w), log2_pow2(self.n_e)
        N, l = self.n_w, self.num_io

        def col(c):
            return N + c if c <= l else c - l - 1

        self.matrices = tuple(
            [(row, col(c), Fr(v)) for row, c, v in entries] for entries in shape.matrix_entries()
        )

    def z_table(self, W_pad, u, x):  # Length-2N column vector.
        return list(W_pad) + pad_to([u, *x], self.n_w)

    def multiply(self, z):  # (Az, Bz, Cz) padded to n_e rows.
        out = []
        for entries in self.matrices:
            acc = [Fr.zero()] * self.n_e
            for row, c, v in entries:
                acc[row] += v * z[c]
            out.append(acc)
        return out

    def bound_rows(self, eq_rx, gamma):  # (A + g B + g^2 C)(rx, y) for every column y.
        out = [Fr.zero()] * (2 * self.n_w)
        for weight, entries in zip((Fr.one(), gamma, gamma * gamma), self.matrices):
            for row, c, v in entries:
                out[c] += eq_rx[row] * v * weight
        return out

    def evaluate_matrices(self, eq_rx, eq_ry, gamma):  # (A + g B + g^2 C)(rx, ry).
        total = Fr.zero()
        for weight, entries in zip((Fr.one(), gamma, gamma * gamma), self.matrices):
            acc = Fr.zero()
            for row, c, v in entries:
                acc += eq_rx[row] * eq_ry[c] * v
            total += weight * acc
        return total

    def eval_io(self, u, x, r):  # MLE of [u, x, 0, ...] at r.
        eq = EqPolynomial.evals(r)
        out = eq[0] * u
        for k, xk in enumerate(x):
            out += eq[1 + k] * xk
        return out

def _statement_transcript(pp, step_count, z_0, z_n, U):
    t = Blake2bTranscript.new(b"grapevine/decider")
    t.append_bytes(b"pp", pp.digest)
    t.append_u64(b"steps", step_count)
    t.append_scalars(b"z0", z_0)
    t.append_scalars(b"zn", z_n)
    U.absorb_into(t, pp.primary)
    return t

class Decider:  # Compiles a session's accumulator into a DeciderProof and verifies such proofs.
    def __init__(self, pp):
        self.pp = pp
        self.spartan = SpartanShape(pp)

    def decide(self, handle):  # DeciderProof for the session's current accumulator.
        with handle._lock:
            handle.ensure_usable()
            pp, U, wit = self.pp, handle.running, handle.witness
            try:
                pp.ck_W.open(U.comm_W, wit.W, wit.r_W)
                pp.ck_E.open(U.comm_E, wit.E, wit.r_E)
            except CommitmentMismatchError as exc:
                handle.poison(exc)
                raise DeciderCompileError(f"accumulator witness does not open its commitments: {exc}") from exc
            bad = pp.shape.unsatisfied_rows([U.u, *U.x, *wit.W], wit.E)
            if bad:
                handle.poison(f"relaxed relation unsatisfied at rows {bad[:8]}")
                raise DeciderCompileError(f"accumulator does not satisfy the relaxed relation (rows {bad[:8]})")
            t0 = time.perf_counter()
            proof = self._prove(handle.step_index, handle.z_0, handle.z_i, tuple(handle.records), U, wit)
            debug_event(
                logger, "decider.py:decide", "decider proof built",
                session=handle.session_id, steps=handle.step_index,
                elapsed_ms=round((time.perf_counter() - t0) * 1000, 3),
            )
            return proof

    def _prove(self, step_count, z_0, z_n, steps, U, wit):
        pp, sp = self.pp, self.spartan
        t = _statement_transcript(pp, step_count, z_0, z_n, U)
        tau = t.challenge_vector(sp.log_e, Fr)
        W_pad, E_pad = pad_to(wit.W, sp.n_w), pad_to(wit.E, sp.n_e)
        z = sp.z_table(W_pad, U.u, U.x)
        Az, Bz, Cz = sp.multiply(z)
        u = U.u

        outer, rx, finals = SumcheckInstanceProof.prove(
            Fr.zero(), sp.log_e, 3, [EqPolynomial.evals(tau), Az, Bz, Cz, E_pad],
            lambda v: v[0] * (v[1] * v[2] - u * v[3] - v[4]), t,
        )
        claims = tuple(finals[1:])
        t.append_scalars(b"outer_claims", claims)
        gamma = t.challenge_scalar(Fr)
        eq_rx = EqPolynomial.evals(rx)

        a, b, c, _ = claims
        inner, ry, _ = SumcheckInstanceProof.prove(
            a + gamma * b + gamma * gamma * c, sp.log_w + 1, 2, [sp.bound_rows(eq_rx, gamma), z],
            lambda v: v[0] * v[1], t,
        )
        eval_W = mle_evaluate(W_pad, ry[1:])
        t.append_scalar(b"eval_W", eval_W)
        ipa_W = ipa.prove(pp.ck_W, pp.ipa_u, t, U.comm_W, W_pad, wit.r_W, EqPolynomial.evals(ry[1:]), eval_W)
        ipa_E = ipa.prove(pp.ck_E, pp.ipa_u, t, U.comm_E, E_pad, wit.r_E, eq_rx, claims[3])
        return DeciderProof(
            step_count, tuple(z_0), tuple(z_n), U, tuple(steps), outer, claims, inner, eval_W, ipa_W, ipa_E
        )

    def check_decider(self, proof, public_output):  # Raise DeciderVerifyError unless the proof verifies.
        pp, sp = self.pp, self.spartan
        _check_structure(pp, proof)
        try:
            expected = tuple(Fr(int(v)) for v in public_output)
        except (TypeError, ValueError):
            raise DeciderVerifyError("public output must be a sequence of field elements") from None
        if expected != proof.z_n:
            raise DeciderVerifyError("proof is for a different public output")
        if len(proof.steps) != proof.step_count:
            raise DeciderVerifyError("step_count does not match the number of step records")
        try:
            U_replayed, z_replayed, _ = replay_folds(pp, proof.z_0, proof.steps)
        except IVCVerifyError as exc:
            raise DeciderVerifyError(str(exc)) from exc
        if z_replayed != proof.z_n:
            raise DeciderVerifyError("step records do not reach the claimed public output")
        U = proof.instance
        if U != U_replayed:
            raise DeciderVerifyError("accumulator does not match the replayed folds")
        t = _statement_transcript(pp, proof.step_count, proof.z_0, proof.z_n, U)
        tau = t.challenge_vector(sp.log_e, Fr)
        try:
            e, rx = proof.outer.verify(Fr.zero(), sp.log_e, 3, t)
            a, b, c, e_E = proof.outer_claims
            if e != EqPolynomial.mle(tau, rx) * (a * b - U.u * c - e_E):
                raise DeciderVerifyError("outer sumcheck final claim mismatch")
            t.append_scalars(b"outer_claims", proof.outer_claims)
            gamma = t.challenge_scalar(Fr)
            e2, ry = proof.inner.verify(a + gamma * b + gamma * gamma * c, sp.log_w + 1, 2, t)
            eq_rx = EqPolynomial.evals(rx)
            z_ry = (1 - ry[0]) * proof.eval_W + ry[0] * sp.eval_io(U.u, U.x, ry[1:])
            if e2 != sp.evaluate_matrices(eq_rx, EqPolynomial.evals(ry), gamma) * z_ry:
                raise DeciderVerifyError("inner sumcheck final claim mismatch")
            t.append_scalar(b"eval_W", proof.eval_W)
            ipa.verify(pp.ck_W, pp.ipa_u, t, U.comm_W, EqPolynomial.evals(ry[1:]), proof.eval_W, proof.ipa_W)
            ipa.verify(pp.ck_E, pp.ipa_u, t, U.comm_E, eq_rx, e_E, proof.ipa_E)
        except (SumcheckVerifyError, IPAVerifyError) as exc:
            raise DeciderVerifyError(str(exc)) from exc

    def verify_decider(self, proof, public_output):  # Boolean form; accepts a DeciderProof or its bytes.
        try:
            if isinstance(proof, (bytes, bytearray, memoryview)):
                from proof_io import decode_decider_proof  # local import to keep module dependency minimal

                proof = decode_decider_proof(bytes(proof))
            self.check_decider(proof, public_output)
        except (DeciderVerifyError, SerializationError) as exc:
            logger.info("decider proof rejected: %s", exc)
            return False
        return True

    def verify_session(self, ivc_proof, decider_proof):  # Replay the folds and check the decider on the same accumulator.
        try:
            check_ivc(self.pp, ivc_proof)
            same = (
                isinstance(decider_proof, DeciderProof)
                and decider_proof.instance == ivc_proof.running_instance
                and decider_proof.step_count == ivc_proof.step_count
                and decider_proof.z_0 == ivc_proof.z_0
                and decider_proof.steps == ivc_proof.steps
            )
            if not same:
                raise DeciderVerifyError("decider proof and IVC proof describe different sessions")
            self.check_decider(decider_proof, ivc_proof.final_public_output)
        except (IVCVerifyError, DeciderVerifyError) as exc:
            logger.info("session rejected: %s", exc)
            return False
        return True

def _is_scalars(xs, n):
    return isinstance(xs, tuple) and len(xs) == n and all(isinstance(x, Fr) for x in xs)

def _is_point(curve, P):
    return P is None or (
        isinstance(P, tuple) and len(P) == 2 and all(isinstance(c, int) for c in P) and curve.is_on_curve(P)
    )

def _check_structure(pp, proof):  # Reject malformed proofs before any arithmetic.
    C, k = pp.primary, pp.state_len
    if not isinstance(proof, DeciderProof):
        raise DeciderVerifyError("expected a DeciderProof")
    U = proof.instance
    ok = (
        isinstance(proof.step_count, int) and proof.step_count >= 0
        and _is_scalars(proof.z_0, k) and _is_scalars(proof.z_n, k) and isinstance(proof.steps, tuple)
        and isinstance(U, RelaxedInstance) and isinstance(U.u, Fr) and _is_scalars(U.x, pp.num_io)
        and _is_point(C, U.comm_W) and _is_point(C, U.comm_E)
        and isinstance(proof.outer, SumcheckInstanceProof) and isinstance(proof.inner, SumcheckInstanceProof)
        and _is_scalars(proof.outer_claims, 4) and isinstance(proof.eval_W, Fr)
    )
    if ok:
        for p in (proof.ipa_W, proof.ipa_E):
            ok = ok and isinstance(p, IPAProof) and isinstance(p.a, Fr) and isinstance(p.blind, Fr)
            ok = ok and all(_is_point(C, P) for P in list(p.L) + list(p.R))
        for s in (proof.outer, proof.inner):
            ok = ok and all(
                all(isinstance(c, Fr) for c in poly.coeffs_except_linear_term) for poly in s.compressed_polys
            )
    if not ok:
        raise DeciderVerifyError("malformed decider proof")
