from field import Fr  # circuit scalar field

def log2_pow2(n):  # Compute log2(n) for n a power of two.
    n = int(n)
    if n <= 0 or (n & (n - 1)) != 0:
        raise ValueError("expected power-of-two n")
    return n.bit_length() - 1

class UniPoly:  # Univariate polynomial with coefficients in Fr.
    def __init__(self, coeffs):  # Store coefficients in ascending order (c0, c1, ...).
        self.coeffs = [c if isinstance(c, Fr) else Fr(c) for c in coeffs]

    @classmethod
    def from_evals(cls, evals):  # Interpolate through (0, e0), (1, e1), ..., (d, ed).
        evals = [e if isinstance(e, Fr) else Fr(e) for e in evals]
        n = len(evals)
        coeffs = [Fr.zero()] * n
        for i, e in enumerate(evals):
            if e.is_zero():
                continue
            # basis = prod_{j != i} (X - j) / (i - j), built in ascending coefficients
            basis, denom = [Fr.one()], Fr.one()
            for j in range(n):
                if j == i:
                    continue
                basis = [Fr.zero()] + basis
                for t in range(len(basis) - 1):
                    basis[t] -= basis[t + 1] * j
                denom *= i - j
            scale = e / denom
            for t in range(n):
                coeffs[t] += basis[t] * scale
        return cls(coeffs)

    def degree(self):  # Degree of the polynomial.
        return max(0, len(self.coeffs) - 1)

    def evaluate(self, x):  # Evaluate by Horner.
        x = x if isinstance(x, Fr) else Fr(x)
        out = Fr.zero()
        for c in reversed(self.coeffs):
            out = out * x + c
        return out

    def compress(self):  # Drop the linear term (recovered by the verifier from the running claim).
        return CompressedUniPoly([self.coeffs[0]] + self.coeffs[2:])

class CompressedUniPoly:  # Compressed univariate poly (missing linear term).
    def __init__(self, coeffs_except_linear_term):  # Store [c0, c2, c3, ...].
        self.coeffs_except_linear_term = [
            c if isinstance(c, Fr) else Fr(c) for c in coeffs_except_linear_term
        ]

    def __eq__(self, other):
        return isinstance(other, CompressedUniPoly) and self.coeffs_except_linear_term == other.coeffs_except_linear_term

    def __repr__(self): return f"CompressedUniPoly({self.coeffs_except_linear_term})"

    def degree(self):  # Degree bound equals len(coeffs_except_linear_term).
        return len(self.coeffs_except_linear_term)

    def _recover_linear_term(self, hint):  # Recover c1 from hint = f(0) + f(1).
        hint = hint if isinstance(hint, Fr) else Fr(hint)
        c0 = self.coeffs_except_linear_term[0]
        linear = hint - c0 - c0
        for c in self.coeffs_except_linear_term[1:]:
            linear -= c
        return linear

    def decompress(self, hint):  # Decompress into UniPoly using provided hint.
        c1 = self._recover_linear_term(hint)
        coeffs = [self.coeffs_except_linear_term[0], c1] + self.coeffs_except_linear_term[1:]
        return UniPoly(coeffs)

    def eval_from_hint(self, hint, x):  # Verifier evaluation without checking f(0)+f(1)=hint.
        x = x if isinstance(x, Fr) else Fr(x)
        c1 = self._recover_linear_term(hint)
        running_point = x
        running_sum = self.coeffs_except_linear_term[0] + x * c1
        for c in self.coeffs_except_linear_term[1:]:
            running_point = running_point * x
            running_sum += c * running_point
        return running_sum

class EqPolynomial:  # Equality polynomial utilities.
    @staticmethod
    def mle(x, y):  # Compute ∏ (x_i*y_i + (1-x_i)*(1-y_i)).
        if len(x) != len(y):
            raise ValueError("mle requires equal-length vectors")
        out = Fr.one()
        for xi, yi in zip(x, y):
            xi = xi if isinstance(xi, Fr) else Fr(xi)
            yi = yi if isinstance(yi, Fr) else Fr(yi)
            out *= xi * yi + (Fr.one() - xi) * (Fr.one() - yi)
        return out

    @staticmethod
    def evals(r, scaling_factor=None):  # Compute table { eq(r, b) : b∈{0,1}^n } in big-endian order.
        r = [x if isinstance(x, Fr) else Fr(x) for x in r]
        scale = (
            Fr.one()
            if scaling_factor is None
            else (scaling_factor if isinstance(scaling_factor, Fr) else Fr(scaling_factor))
        )
        evals = [scale]
        for x in r:
            nxt = [Fr.zero()] * (2 * len(evals))
            for i, s in enumerate(evals):
                nxt[2 * i] = s - s * x
                nxt[2 * i + 1] = s * x
            evals = nxt
        return evals

def pad_to(values, n):  # Right-pad a vector of Fr with zeros to length n.
    values = list(values)
    if len(values) > n:
        raise ValueError(f"cannot pad length {len(values)} down to {n}")
    return values + [Fr.zero()] * (n - len(values))

def bind_top(table, r):  # Fix the most significant variable of a big-endian table to r.
    half = len(table) // 2
    return [table[i] + (table[i + half] - table[i]) * r for i in range(half)]

def mle_evaluate(table, r):  # Evaluate the multilinear extension of `table` at r (big-endian).
    if len(table) != 1 << len(r):
        raise ValueError("table length must be 2^len(r)")
    out = Fr.zero()
    for e, v in zip(EqPolynomial.evals(r), table):
        out += e * v
    return out
