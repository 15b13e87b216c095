"""Nova folding driver over the Pallas/Vesta cycle.

## Fold (step i)

```text
h_i      = U_i.digest(pp, i, z_0, z_i)                 # accumulator public repr
(u_i, W) = arithmetize(i, z_i, h_i)                    # x_i = [i, h_i, z_i, z_{i+1}]
T        = A z1 o B z2 + A z2 o B z1 - u1 C z2 - C z1   # cross term
r        = H(pp, U_i, comm_W_i, x_i, comm_T)           # 128-bit challenge
U_{i+1}  = (comm_W + r comm_W_i, comm_E + r comm_T, u + r, x + r x_i)
```

The same `r` combines every term of a fold. The secondary (Vesta) accumulator
folds a Pedersen commitment to the fold's group-operation claims: the four
Pallas points involved and `r`, all native Vesta scalars. It is a record of
the cycle's group operations in the form an Fp-native circuit would take them;
the verifiers here redo every primary group operation natively, so it adds no
soundness of its own and is only checked for consistency.

## Verification

`replay_folds` re-derives every fold from `z_0` and the public `StepRecord`
arena (no witnesses). `check_ivc` compares the replayed accumulator, secondary
accumulator and final state with the proof. Replay is linear in the step
count; the decider additionally proves that the replayed accumulator is
satisfiable, which is what ties `z_n` to an honest chain of steps.
"""

from __future__ import annotations

import hashlib  # seeded blinding
import itertools  # session ids
import logging  # module logger
import random  # seeded chaff inputs
import threading  # single-writer sessions
import time  # fold timings
from dataclasses import dataclass  # proof containers

from debuglog import debug_event  # NDJSON debug records
from errors import (  # driver failures
    CommitmentMismatchError,
    SequenceError,
    SerializationError,
    SessionPoisonedError,
)
from field import Fr  # circuit field
from params import FoldingConfig  # prover knobs
from step_circuit import public_io  # augmented public IO layout
from transcript import Blake2bTranscript  # Fiat-Shamir

logger = logging.getLogger(__name__)

class IVCVerifyError(Exception):  # Replay verification failed (message is the reason).
    pass

@dataclass(frozen=True)
class RelaxedInstance:  # Committed relaxed R1CS instance (the public accumulator).
    comm_W: tuple | None
    comm_E: tuple | None
    u: Fr
    x: tuple

    @classmethod
    def zero(cls, num_io):  # Canonical empty accumulator U_0.
        return cls(None, None, Fr.zero(), tuple(Fr.zero() for _ in range(num_io)))

    def absorb_into(self, transcript, curve):  # Append commitments, slack and public IO.
        transcript.append_point(b"comm_W", curve, self.comm_W)
        transcript.append_point(b"comm_E", curve, self.comm_E)
        transcript.append_scalar(b"u", self.u)
        transcript.append_scalars(b"x", self.x)

    def digest(self, pp, step_index, z_0, z_i):  # Public representation h_i carried into step i.
        t = Blake2bTranscript.new(b"grapevine/accumulator")
        t.append_bytes(b"pp", pp.digest)
        t.append_u64(b"i", step_index)
        t.append_scalars(b"z0", z_0)
        t.append_scalars(b"zi", z_i)
        self.absorb_into(t, pp.primary)
        return t.challenge_scalar_wide(Fr)

    def fold(self, pp, comm_W_i, x_i, comm_T, r):  # Linear combination with a strict instance (u=1, E=0).
        C = pp.primary
        return RelaxedInstance(
            C.add(self.comm_W, C.mul(comm_W_i, r)),
            C.add(self.comm_E, C.mul(comm_T, r)),
            self.u + r,
            tuple(a + r * b for a, b in zip(self.x, x_i)),
        )

@dataclass
class RelaxedWitness:  # Prover-only opening (W, E, r_W, r_E) of a RelaxedInstance.
    W: list
    E: list
    r_W: Fr
    r_E: Fr

    @classmethod
    def zero(cls, num_witness, num_constraints):
        return cls([Fr.zero()] * num_witness, [Fr.zero()] * num_constraints, Fr.zero(), Fr.zero())

    def fold(self, W_i, T, r_Wi, r_T, r):  # E' = E + r T (the incoming E is zero).
        return RelaxedWitness(
            [a + r * b for a, b in zip(self.W, W_i)],
            [a + r * b for a, b in zip(self.E, T)],
            self.r_W + r * r_Wi,
            self.r_E + r * r_T,
        )

@dataclass(frozen=True)
class StepRecord:  # Public trace of one fold; its position in the arena is its step index.
    index: int
    z_out: tuple
    comm_W: tuple | None
    comm_T: tuple | None

@dataclass(frozen=True)
class IVCProof:  # Witness-free proof of an n-step session.
    step_count: int
    z_0: tuple
    final_public_output: tuple
    running_instance: RelaxedInstance
    steps: tuple
    cyclefold_commitment: tuple | None

    @property
    def accumulated_instance_commitments(self):  # (comm_W, comm_E) of U_n.
        return (self.running_instance.comm_W, self.running_instance.comm_E)

    @property
    def aux_commitments(self):  # Secondary accumulator followed by each fold's (comm_W_i, comm_T_i).
        return (self.cyclefold_commitment, *(c for rec in self.steps for c in (rec.comm_W, rec.comm_T)))

    def to_bytes(self):
        from proof_io import encode_ivc_proof  # local import to keep module dependency minimal

        return encode_ivc_proof(self)

    @classmethod
    def from_bytes(cls, data):
        from proof_io import decode_ivc_proof  # local import to keep module dependency minimal

        return decode_ivc_proof(data)

def fold_challenge(pp, U, comm_W_i, x_i, comm_T):  # Fiat-Shamir challenge r for one fold.
    t = Blake2bTranscript.new(b"grapevine/nifs")
    t.append_bytes(b"pp", pp.digest)
    U.absorb_into(t, pp.primary)
    t.append_point(b"u_comm_W", pp.primary, comm_W_i)
    t.append_scalars(b"u_x", x_i)
    t.append_point(b"comm_T", pp.primary, comm_T)
    return t.challenge_scalar(Fr)

def cyclefold_claims(pp, comm_W_i, comm_T, U_next, r):  # Fold's EC-operation data as secondary scalars.
    F = pp.secondary.scalar_field
    out = [F(int(r))]
    for P in (comm_W_i, comm_T, U_next.comm_W, U_next.comm_E):
        x, y = (0, 0) if P is None else P
        out += [F(x), F(y)]
    return out

def fold_cyclefold(pp, acc, comm_W_i, comm_T, U_next, r):  # acc' = acc + rho * Commit(claims).
    C2 = pp.secondary
    cf_u = pp.cf_ck.commit(cyclefold_claims(pp, comm_W_i, comm_T, U_next, r))
    t = Blake2bTranscript.new(b"grapevine/cyclefold")
    t.append_bytes(b"pp", pp.digest)
    t.append_point(b"acc", C2, acc)
    t.append_point(b"cf_u", C2, cf_u)
    rho = t.challenge_scalar(C2.scalar_field)
    return C2.add(acc, C2.mul(cf_u, rho))

class SessionHandle:  # One IVC session: the live accumulator, its witness and the step arena.
    _ids = itertools.count()

    def __init__(self, z_0, num_io, num_witness, num_constraints):
        self.session_id = next(SessionHandle._ids)
        self.z_0 = tuple(z_0)
        self.z_i = self.z_0
        self.step_index = 0
        self.running = RelaxedInstance.zero(num_io)
        self.witness = RelaxedWitness.zero(num_witness, num_constraints)
        self.cyclefold = None
        self.records = []
        self.poisoned = None  # reason string once the session must be discarded
        self._lock = threading.Lock()

    def __repr__(self):
        return f"SessionHandle(id={self.session_id}, step={self.step_index})"

    def snapshot(self):  # Public accumulator (safe to serialize).
        return self.running

    def ensure_usable(self):
        if self.poisoned is not None:
            raise SessionPoisonedError(f"session {self.session_id} is unusable: {self.poisoned}")

    def poison(self, reason):
        self.poisoned = str(reason)
        logger.error("session %d poisoned: %s", self.session_id, reason)

class FoldingDriver:  # Drives init -> step* -> finalize for an augmented step circuit.
    def __init__(self, pp, step_circuit, config=None):
        self.pp = pp
        self.circuit = step_circuit
        self.config = config if config is not None else FoldingConfig()
        if step_circuit.r1cs.digest() != pp.shape.digest():
            raise ValueError("public parameters were built for a different step circuit")

    def init(self, initial_public_input):  # New session at z_0 with the zero accumulator.
        z_0 = tuple(Fr(int(v)) for v in initial_public_input)
        if len(z_0) != self.pp.state_len:
            raise ValueError(f"z_0 must have {self.pp.state_len} elements, got {len(z_0)}")
        shape = self.pp.shape
        handle = SessionHandle(z_0, shape.num_io, shape.num_witness, shape.num_constraints)
        debug_event(logger, "nova.py:init", "session started", session=handle.session_id, z_0=z_0)
        return handle

    def _seeded(self, handle, step_index, tag):  # 64 bytes derived from (seed, pp, z_0, step, tag).
        h = hashlib.blake2b(digest_size=64, person=b"grapevine-seed")
        h.update(str(self.config.seed).encode())
        h.update(self.pp.digest)
        for v in handle.z_0:
            h.update(v.to_bytes())
        h.update(int(step_index).to_bytes(8, "little"))
        h.update(tag)
        return h.digest()

    def _blind(self, handle, step_index, tag):
        if not self.config.hiding:
            return Fr.zero()
        if self.config.seed is None:
            return Fr.random()
        return Fr.from_uniform_bytes(self._seeded(handle, step_index, tag))

    def _chaff_rng(self, handle, step_index):
        if self.config.seed is None:
            return None
        return random.Random(int.from_bytes(self._seeded(handle, step_index, b"chaff"), "little"))

    def step(self, handle, step_private_aux=None, *, step_index=None):  # Fold step `handle.step_index`.
        with handle._lock:
            handle.ensure_usable()
            i = handle.step_index
            if step_index is not None and int(step_index) != i:
                raise SequenceError(f"session {handle.session_id} expects step {i}, got {step_index}")
            t0 = time.perf_counter()
            pp = self.pp
            U, wit = handle.running, handle.witness

            h_i = U.digest(pp, i, handle.z_0, handle.z_i)
            inst, W_i = self.circuit.arithmetize(
                i, handle.z_i, None, h_i, step_private_aux, rng=self._chaff_rng(handle, i)
            )
            x_i = inst.x
            r_Wi = self._blind(handle, i, b"W")
            comm_Wi = pp.ck_W.commit(W_i, r_Wi)

            T = pp.shape.cross_term([U.u, *U.x, *wit.W], [Fr.one(), *x_i, *W_i])
            r_T = self._blind(handle, i, b"T")
            comm_T = pp.ck_E.commit(T, r_T)

            r = fold_challenge(pp, U, comm_Wi, x_i, comm_T)
            U_next = U.fold(pp, comm_Wi, x_i, comm_T, r)
            wit_next = wit.fold(W_i, T, r_Wi, r_T, r)
            cf_next = fold_cyclefold(pp, handle.cyclefold, comm_Wi, comm_T, U_next, r)

            if self.config.check_folds:
                try:
                    pp.ck_W.open(U_next.comm_W, wit_next.W, wit_next.r_W)
                    pp.ck_E.open(U_next.comm_E, wit_next.E, wit_next.r_E)
                except CommitmentMismatchError as exc:
                    handle.poison(exc)
                    raise

            handle.running, handle.witness, handle.cyclefold = U_next, wit_next, cf_next
            handle.records.append(StepRecord(i, inst.z_out, comm_Wi, comm_T))
            handle.z_i = inst.z_out
            handle.step_index = i + 1
            debug_event(
                logger, "nova.py:step", "folded step",
                session=handle.session_id, step=i, elapsed_ms=round((time.perf_counter() - t0) * 1000, 3),
            )

    def finalize(self, handle):  # IVCProof for the steps folded so far (session stays usable).
        with handle._lock:
            handle.ensure_usable()
            return IVCProof(
                handle.step_index,
                handle.z_0,
                handle.z_i,
                handle.running,
                tuple(handle.records),
                handle.cyclefold,
            )

    def check_ivc(self, proof):
        return check_ivc(self.pp, proof)

    def verify_ivc(self, proof):
        return verify_ivc(self.pp, proof)

def _check_scalars(xs, n, what):
    if not isinstance(xs, tuple) or len(xs) != n or not all(isinstance(x, Fr) for x in xs):
        raise IVCVerifyError(f"{what} must be a tuple of {n} field elements")

def _check_point(curve, P, what):
    ok = P is None or (
        isinstance(P, tuple) and len(P) == 2 and all(isinstance(c, int) for c in P) and curve.is_on_curve(P)
    )
    if not ok:
        raise IVCVerifyError(f"{what} is not a valid {curve.name} point")

def replay_folds(pp, z_0, steps):  # (U_n, z_n, secondary acc) re-derived from z_0 and the step records.
    k, C = pp.state_len, pp.primary
    _check_scalars(z_0, k, "z_0")
    if not isinstance(steps, tuple):
        raise IVCVerifyError("step records must be a tuple")
    U, z, cf = RelaxedInstance.zero(pp.num_io), z_0, None
    for i, rec in enumerate(steps):
        if not isinstance(rec, StepRecord) or rec.index != i:
            raise IVCVerifyError(f"step record {i} is missing or out of order")
        _check_scalars(rec.z_out, k, f"step {i} z_out")
        _check_point(C, rec.comm_W, f"step {i} comm_W")
        _check_point(C, rec.comm_T, f"step {i} comm_T")
        h = U.digest(pp, i, z_0, z)
        x_i = public_io(i, h, z, rec.z_out)
        r = fold_challenge(pp, U, rec.comm_W, x_i, rec.comm_T)
        U = U.fold(pp, rec.comm_W, x_i, rec.comm_T, r)
        cf = fold_cyclefold(pp, cf, rec.comm_W, rec.comm_T, U, r)
        z = rec.z_out
    return U, z, cf

def check_ivc(pp, proof):  # Replay every fold; raise IVCVerifyError with the first failing check.
    if not isinstance(proof, IVCProof):
        raise IVCVerifyError("expected an IVCProof")
    k, C = pp.state_len, pp.primary
    n = proof.step_count
    if not isinstance(n, int) or n < 0 or not isinstance(proof.steps, tuple) or len(proof.steps) != n:
        raise IVCVerifyError("step_count does not match the number of step records")
    _check_scalars(proof.z_0, k, "z_0")
    _check_scalars(proof.final_public_output, k, "final_public_output")
    U_claim = proof.running_instance
    if not isinstance(U_claim, RelaxedInstance) or not isinstance(U_claim.u, Fr):
        raise IVCVerifyError("running_instance is malformed")
    _check_scalars(U_claim.x, pp.num_io, "running_instance.x")
    _check_point(C, U_claim.comm_W, "running_instance.comm_W")
    _check_point(C, U_claim.comm_E, "running_instance.comm_E")
    _check_point(pp.secondary, proof.cyclefold_commitment, "cyclefold_commitment")

    U, z, cf = replay_folds(pp, proof.z_0, proof.steps)
    if z != proof.final_public_output:
        raise IVCVerifyError("final public output does not match the step chain")
    if U != U_claim:
        raise IVCVerifyError("running instance does not match the replayed folds")
    if cf != proof.cyclefold_commitment:
        raise IVCVerifyError("secondary accumulator does not match the replayed folds")

def verify_ivc(pp, proof):  # Boolean form of check_ivc; accepts an IVCProof or its serialized bytes.
    try:
        if isinstance(proof, (bytes, bytearray, memoryview)):
            from proof_io import decode_ivc_proof  # local import to keep module dependency minimal

            proof = decode_ivc_proof(bytes(proof))
        check_ivc(pp, proof)
    except (IVCVerifyError, SerializationError) as exc:
        logger.info("IVC proof rejected: %s", exc)
        return False
    return True
