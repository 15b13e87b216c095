"""Public parameters and prover configuration.

Everything a prover or verifier needs is built once by `nova_setup` and passed
explicitly to the driver and the decider; nothing lives in module globals.
"""

import hashlib  # parameter digest
import logging  # module logger
import os  # environment-driven config
from dataclasses import dataclass  # frozen configs

from commitment import PedersenCommitment  # commitment keys
from curve import PASTA  # default curve cycle

logger = logging.getLogger(__name__)

CYCLEFOLD_WIDTH = 9  # r + four primary points (x, y) per fold.

def next_pow2(n):  # Smallest power of two >= n.
    n = int(n)
    return 1 if n <= 1 else 1 << (n - 1).bit_length()

def _env_flag(environ, name, default):  # "1"/"true"/"yes" -> True, "0"/"false"/"no" -> False.
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    raw = raw.strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")

@dataclass(frozen=True)
class FoldingConfig:  # Prover-side knobs.
    hiding: bool = False  # Blind W/T commitments.
    seed: int | None = None  # Derive blinding/chaff deterministically from this seed.
    check_folds: bool = True  # Re-open folded commitments after every fold.

    @classmethod
    def from_env(cls, environ=None):  # GRAPEVINE_HIDING / GRAPEVINE_SEED / GRAPEVINE_CHECK_FOLDS.
        environ = os.environ if environ is None else environ
        seed = environ.get("GRAPEVINE_SEED")
        return cls(
            hiding=_env_flag(environ, "GRAPEVINE_HIDING", False),
            seed=int(seed, 0) if seed else None,
            check_folds=_env_flag(environ, "GRAPEVINE_CHECK_FOLDS", True),
        )

@dataclass(frozen=True)
class PublicParams:  # Commitment keys and shape shared by prover, IVC verifier and decider.
    cycle: object
    shape: object  # augmented R1CS
    state_len: int
    ck_W: PedersenCommitment  # primary key for W (padded length)
    ck_E: PedersenCommitment  # primary key for E and T (padded length)
    cf_ck: PedersenCommitment  # secondary key for fold claims
    ipa_u: tuple  # primary generator binding IPA inner products
    label: bytes
    digest: bytes

    @property
    def primary(self): return self.cycle.primary

    @property
    def secondary(self): return self.cycle.secondary

    @property
    def num_io(self): return self.shape.num_io

def nova_setup(step_circuit, *, label=b"grapevine", cycle=PASTA):  # Build PublicParams for an augmented step circuit.
    label = label.encode() if isinstance(label, str) else bytes(label)
    shape = step_circuit.r1cs
    n_w = next_pow2(max(shape.num_witness, shape.num_io + 1, 2))
    n_e = next_pow2(max(shape.num_constraints, 2))
    ck_W = PedersenCommitment.setup(cycle.primary, n_w, label + b"/ck_W")
    ck_E = PedersenCommitment.setup(cycle.primary, n_e, label + b"/ck_E")
    cf_ck = PedersenCommitment.setup(cycle.secondary, CYCLEFOLD_WIDTH, label + b"/cyclefold")
    ipa_u = cycle.primary.hash_to_point(label + b"/ipa_u", 0)

    h = hashlib.blake2b(digest_size=32, person=b"grapevine-pp")
    h.update(len(label).to_bytes(2, "little") + label)
    h.update(cycle.name.encode())
    h.update(shape.digest())
    for x in (step_circuit.state_len, n_w, n_e, CYCLEFOLD_WIDTH):
        h.update(int(x).to_bytes(8, "little"))
    pp = PublicParams(cycle, shape, step_circuit.state_len, ck_W, ck_E, cf_ck, ipa_u, label, h.digest())
    logger.debug(
        "nova setup: %d constraints, |W|=%d (padded %d), |E| padded %d, pp=%s",
        shape.num_constraints, shape.num_witness, n_w, n_e, pp.digest.hex()[:16],
    )
    return pp
