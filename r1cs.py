import hashlib  # shape digest

from field import Fr  # circuit scalar field

class LC:  # Linear combination sum coeff_i * z[idx_i]; wire 0 carries the constant (or the slack u).
    def __init__(self, terms=None, const=0):  # Store merged (index, coeff_int) terms; `const` lands on wire 0.
        acc = {}
        for idx, coeff in list(terms or []) + ([(0, const)] if const else []):
            idx = int(idx)
            acc[idx] = (acc.get(idx, 0) + int(coeff)) % Fr.MODULUS
        self.terms = sorted((i, c) for i, c in acc.items() if c)

    def __eq__(self, other):
        return isinstance(other, LC) and self.terms == other.terms

    def __repr__(self): return f"LC({self.terms})"

    def dot(self, z):  # Evaluate this LC on the assignment z.
        out = Fr.zero()
        for idx, coeff in self.terms:
            out += z[idx] * coeff
        return out

    def remap(self, mapping):  # Re-index wires through `mapping(old) -> new`.
        return LC([(mapping(i), c) for i, c in self.terms])

    def max_index(self):  # Largest wire index referenced (-1 when empty).
        return max((i for i, _ in self.terms), default=-1)

class R1CSConstraint:  # One row: <a, z> * <b, z> = <c, z>.
    def __init__(self, a_lc, b_lc, c_lc):  # Store LCs for A, B and C.
        self.a = a_lc
        self.b = b_lc
        self.c = c_lc

    def __eq__(self, other):
        return isinstance(other, R1CSConstraint) and (self.a, self.b, self.c) == (other.a, other.b, other.c)

    def __repr__(self): return f"R1CSConstraint({self.a}, {self.b}, {self.c})"

class R1CS:  # Sparse constraint system in Circom wire order: [1 | public (num_io) | private].
    def __init__(self, constraints, num_wires, num_io):  # Validate indices against the declared wire count.
        self.constraints = list(constraints)
        self.num_wires = int(num_wires)
        self.num_io = int(num_io)
        if self.num_wires < 1 + self.num_io:
            raise ValueError("num_wires must cover the constant wire and public IO")
        for k, row in enumerate(self.constraints):
            top = max(row.a.max_index(), row.b.max_index(), row.c.max_index())
            if top >= self.num_wires:
                raise ValueError(f"constraint {k} references wire {top} >= num_wires={self.num_wires}")

    @property
    def num_constraints(self): return len(self.constraints)  # m

    @property
    def num_witness(self): return self.num_wires - 1 - self.num_io  # Private block length.

    def split(self, z):  # (z[0], public IO, private block).
        return z[0], list(z[1 : 1 + self.num_io]), list(z[1 + self.num_io :])

    def multiply(self, z):  # Return (Az, Bz, Cz).
        if len(z) != self.num_wires:
            raise ValueError(f"assignment has {len(z)} entries, expected {self.num_wires}")
        az = [row.a.dot(z) for row in self.constraints]
        bz = [row.b.dot(z) for row in self.constraints]
        cz = [row.c.dot(z) for row in self.constraints]
        return az, bz, cz

    def unsatisfied_rows(self, z, E=None):  # Rows violating Az*Bz = z[0]*Cz + E.
        az, bz, cz = self.multiply(z)
        u = z[0]
        E = E if E is not None else [Fr.zero()] * self.num_constraints
        return [k for k in range(self.num_constraints) if az[k] * bz[k] != u * cz[k] + E[k]]

    def is_satisfied(self, z):  # Strict relation: z[0] must be 1.
        return z[0] == 1 and not self.unsatisfied_rows(z)

    def is_relaxed_satisfied(self, z, E):  # Relaxed relation Az*Bz = u*Cz + E with u = z[0].
        if len(E) != self.num_constraints:
            return False
        return not self.unsatisfied_rows(z, E)

    def cross_term(self, z1, z2):  # T = Az1*Bz2 + Az2*Bz1 - u1*Cz2 - u2*Cz1.
        a1, b1, c1 = self.multiply(z1)
        a2, b2, c2 = self.multiply(z2)
        u1, u2 = z1[0], z2[0]
        return [a1[k] * b2[k] + a2[k] * b1[k] - u1 * c2[k] - u2 * c1[k] for k in range(self.num_constraints)]

    def matrix_entries(self):  # (A, B, C) as lists of (row, col, coeff_int).
        out = ([], [], [])
        for k, row in enumerate(self.constraints):
            for m, lc_ in enumerate((row.a, row.b, row.c)):
                out[m].extend((k, i, c) for i, c in lc_.terms)
        return out

    def digest(self):  # 32-byte blake2b digest of the shape.
        h = hashlib.blake2b(digest_size=32, person=b"grapevine-r1cs")
        h.update(self.num_wires.to_bytes(8, "little"))
        h.update(self.num_io.to_bytes(8, "little"))
        h.update(self.num_constraints.to_bytes(8, "little"))
        for row in self.constraints:
            for lc_ in (row.a, row.b, row.c):
                h.update(len(lc_.terms).to_bytes(4, "little"))
                for i, c in lc_.terms:
                    h.update(i.to_bytes(4, "little"))
                    h.update(c.to_bytes(32, "little"))
        return h.digest()

def lc(expr, names):  # Parse a tiny LC expression: sums of NAME / k*NAME / ints, with + and -.
    s = str(expr).replace(" ", "")
    if not s:
        return LC([], 0)
    if s[0] not in "+-":
        s = "+" + s
    parts = []
    start = 0
    for i in range(1, len(s)):
        if s[i] in "+-":
            parts.append(s[start:i])
            start = i
    parts.append(s[start:])
    terms = []
    const = 0
    for part in parts:
        sign = -1 if part[0] == "-" else 1
        tok = part[1:]
        if not tok:
            continue
        if "*" in tok:
            a, b = tok.split("*", 1)
            terms.append((_wire(b, names), int(a, 0) * sign))
            continue
        # constant
        if tok[0].isdigit():
            const += sign * int(tok, 0)
            continue
        # bare name
        terms.append((_wire(tok, names), sign))
    return LC(terms, const=const)

def _wire(name, names):  # Resolve a signal name to its wire index.
    try:
        return names[name]
    except KeyError:
        raise KeyError(f"unknown signal name: {name!r}") from None
