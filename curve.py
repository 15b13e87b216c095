"""Pallas / Vesta short-Weierstrass curves (`y^2 = x^3 + 5`).

Public points are affine tuples `(x, y)` of canonical ints with `None` as the
point at infinity. Scalar multiplication and MSM run on Jacobian coordinates
internally and convert back with a single inversion.
"""

import hashlib  # hash-to-curve
import math  # Pippenger window size

from field import Fp, Fq  # Pasta base/scalar fields

_INF = (1, 1, 0)  # Jacobian point at infinity.

class Curve:  # One curve of the Pasta cycle, parameterized by its base and scalar fields.
    def __init__(self, name, base_field, scalar_field, b, generator):  # Store parameters and validate the generator.
        self.name = name
        self.base_field, self.scalar_field = base_field, scalar_field
        self.p, self.order, self.b = base_field.MODULUS, scalar_field.MODULUS, int(b)
        self.generator = (int(generator[0]) % self.p, int(generator[1]) % self.p)
        if not self.is_on_curve(self.generator):
            raise ValueError(f"{name} generator is not on the curve")

    def __repr__(self): return f"Curve({self.name})"  # Short printable name.

    def is_on_curve(self, P):  # Check y^2 = x^3 + b or allow point-at-infinity.
        if P is None:
            return True
        x, y = P
        p = self.p
        if not (0 <= x < p and 0 <= y < p):
            return False
        return (y * y - x * x * x - self.b) % p == 0

    def neg(self, P):  # Negate elliptic-curve point.
        return None if P is None else (P[0], (-P[1]) % self.p)

    # Jacobian internals (a = 0): dbl-2009-l and add-2007-bl.
    def _to_jac(self, P):
        return _INF if P is None else (P[0], P[1], 1)

    def _to_affine(self, J):
        X, Y, Z = J
        if Z == 0:
            return None
        p = self.p
        zi = pow(Z, -1, p)
        zi2 = zi * zi % p
        return (X * zi2 % p, Y * zi2 * zi % p)

    def _jdouble(self, J):
        X, Y, Z = J
        if Z == 0 or Y == 0:
            return _INF
        p = self.p
        A, B = X * X % p, Y * Y % p
        C = B * B % p
        D = 2 * ((X + B) * (X + B) - A - C) % p
        E = 3 * A % p
        X3 = (E * E - 2 * D) % p
        Y3 = (E * (D - X3) - 8 * C) % p
        return (X3, Y3, 2 * Y * Z % p)

    def _jadd(self, J1, J2):
        X1, Y1, Z1 = J1
        X2, Y2, Z2 = J2
        if Z1 == 0:
            return J2
        if Z2 == 0:
            return J1
        p = self.p
        Z1Z1, Z2Z2 = Z1 * Z1 % p, Z2 * Z2 % p
        U1, U2 = X1 * Z2Z2 % p, X2 * Z1Z1 % p
        S1, S2 = Y1 * Z2 * Z2Z2 % p, Y2 * Z1 * Z1Z1 % p
        H, r = (U2 - U1) % p, 2 * (S2 - S1) % p
        if H == 0:
            return self._jdouble(J1) if r == 0 else _INF
        I = 4 * H * H % p
        J = H * I % p
        V = U1 * I % p
        X3 = (r * r - J - 2 * V) % p
        Y3 = (r * (V - X3) - 2 * S1 * J) % p
        Z3 = ((Z1 + Z2) * (Z1 + Z2) - Z1Z1 - Z2Z2) * H % p
        return (X3, Y3, Z3)

    def _jmul(self, J, n):
        out = _INF
        for bit in bin(n)[2:]:
            out = self._jdouble(out)
            if bit == "1":
                out = self._jadd(out, J)
        return out

    def double(self, P):  # Elliptic-curve point doubling.
        return self._to_affine(self._jdouble(self._to_jac(P)))

    def add(self, P, Q):  # Elliptic-curve point addition.
        if P is None or Q is None:
            return P if Q is None else Q
        return self._to_affine(self._jadd(self._to_jac(P), self._to_jac(Q)))

    def sub(self, P, Q):  # P - Q.
        return self.add(P, self.neg(Q))

    def mul(self, P, n):  # Double-and-add scalar multiplication (n reduced mod the group order).
        n = int(n) % self.order
        if P is None or n == 0:
            return None
        return self._to_affine(self._jmul(self._to_jac(P), n))

    def msm(self, points, scalars):  # Multi-scalar multiplication sum(s_i * P_i), Pippenger buckets.
        points, scalars = list(points), list(scalars)
        if len(points) != len(scalars):
            raise ValueError("msm requires equal-length points and scalars")
        pairs = []
        for P, s in zip(points, scalars):
            s = int(s) % self.order
            if P is not None and s:
                pairs.append((self._to_jac(P), s))
        if not pairs:
            return None
        if len(pairs) < 8:
            acc = _INF
            for J, s in pairs:
                acc = self._jadd(acc, self._jmul(J, s))
            return self._to_affine(acc)
        c = max(2, int(math.log2(len(pairs))) - 1)
        mask = (1 << c) - 1
        windows = (self.order.bit_length() + c - 1) // c
        acc = _INF
        for w in reversed(range(windows)):
            for _ in range(c):
                acc = self._jdouble(acc)
            buckets = [_INF] * mask
            shift = w * c
            for J, s in pairs:
                idx = (s >> shift) & mask
                if idx:
                    buckets[idx - 1] = self._jadd(buckets[idx - 1], J)
            running, window_sum = _INF, _INF
            for bucket in reversed(buckets):
                running = self._jadd(running, bucket)
                window_sum = self._jadd(window_sum, running)
            acc = self._jadd(acc, window_sum)
        return self._to_affine(acc)

    def hash_to_point(self, label, index):  # Deterministic generator: try-and-increment over blake2b.
        label = label.encode() if isinstance(label, str) else bytes(label)
        ctr = 0
        while True:
            h = hashlib.blake2b(digest_size=64, person=b"grapevine-h2c")
            h.update(self.name.encode())
            h.update(label)
            h.update(int(index).to_bytes(8, "little"))
            h.update(ctr.to_bytes(4, "little"))
            digest = h.digest()
            x = self.base_field.from_uniform_bytes(digest)
            y = (x * x * x + self.b).sqrt()
            if y is not None and not y.is_zero():
                yi = int(y)
                if (yi & 1) != (digest[-1] & 1):
                    yi = self.p - yi
                return (int(x), yi)
            ctr += 1

    def encode_point(self, P):  # Uncompressed 64-byte encoding (x || y, little-endian); zeros = infinity.
        if P is None:
            return b"\x00" * 64
        return int(P[0]).to_bytes(32, "little") + int(P[1]).to_bytes(32, "little")

    def decode_point(self, data):  # Strict decoding with on-curve validation.
        data = bytes(data)
        if len(data) != 64:
            raise ValueError("point encoding must be 64 bytes")
        if data == b"\x00" * 64:
            return None
        P = (int.from_bytes(data[:32], "little"), int.from_bytes(data[32:], "little"))
        if not self.is_on_curve(P):
            raise ValueError(f"point is not on {self.name}")
        return P

class CurveCycle:  # A 2-cycle: each curve's scalar field is the other's base field.
    def __init__(self, primary, secondary):  # Validate the cycle relation.
        if primary.order != secondary.p or secondary.order != primary.p:
            raise ValueError(f"{primary.name}/{secondary.name} do not form a cycle")
        self.primary, self.secondary = primary, secondary

    @property
    def name(self): return f"{self.primary.name}/{self.secondary.name}"  # Tag used in serialized proofs.

PALLAS = Curve("pallas", Fp, Fq, 5, (Fp.MODULUS - 1, 2))  # Primary curve: commitments to Fq vectors.
VESTA = Curve("vesta", Fq, Fp, 5, (Fq.MODULUS - 1, 2))  # Secondary curve: commitments to Fp vectors.
PASTA = CurveCycle(PALLAS, VESTA)  # The only cycle this library is instantiated with.
