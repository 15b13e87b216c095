"""Pedersen vector commitments over one curve of the cycle.

`C = sum_j v_j * G_j + rho * H`. The vector lives in the curve's scalar field;
the commitment's coordinates live in its base field, which is the scalar field
of the other curve of the cycle. Generators come from hash-to-curve, so no
party knows discrete-log relations between them.
"""

from errors import CommitmentMismatchError  # fatal opening failure

class PedersenCommitment:  # Commitment key: generators G_0..G_{n-1} plus blinding generator H.
    def __init__(self, curve, generators, blinding_generator, label=b""):  # Store key material (see `setup`).
        self.curve = curve
        self.generators = tuple(generators)
        self.blinding_generator = blinding_generator
        self.label = bytes(label)

    @classmethod
    def setup(cls, curve, size, label=b"grapevine/pedersen"):  # Derive a key of `size` generators from `label`.
        label = label.encode() if isinstance(label, str) else bytes(label)
        size = int(size)
        if size < 0:
            raise ValueError("commitment key size must be non-negative")
        gens = [curve.hash_to_point(label, i) for i in range(size)]
        h = curve.hash_to_point(label + b"/blinding", 0)
        return cls(curve, gens, h, label)

    def __len__(self): return len(self.generators)  # Maximum committable vector length.

    def __repr__(self): return f"PedersenCommitment({self.curve.name}, n={len(self)}, label={self.label!r})"

    def commit(self, vector, randomness=0):  # Commit to `vector` (len <= key size) with blinding `randomness`.
        vector = list(vector)
        if len(vector) > len(self.generators):
            raise ValueError(f"vector length {len(vector)} exceeds commitment key size {len(self.generators)}")
        points = list(self.generators[: len(vector)]) + [self.blinding_generator]
        scalars = [int(v) for v in vector] + [int(randomness)]
        return self.curve.msm(points, scalars)

    def open(self, commitment, vector, randomness=0):  # Return True or raise CommitmentMismatchError.
        if self.commit(vector, randomness) != commitment:
            raise CommitmentMismatchError(
                f"{self.curve.name} commitment does not open to the given vector (len={len(list(vector))})"
            )
        return True

    def verify_opening(self, commitment, vector, randomness=0):  # Boolean form of `open`.
        try:
            return self.open(commitment, vector, randomness)
        except CommitmentMismatchError:
            return False

    def combine(self, c1, c2, r):  # Homomorphic c1 + r * c2.
        return self.curve.add(c1, self.curve.mul(c2, r))
