import secrets  # OS randomness for blinding factors

class PrimeField:  # Prime field element stored as its canonical residue.
    BYTES = 32  # Encoded size of one element.

    def __init_subclass__(cls):  # Precompute Tonelli-Shanks constants for each subclass.
        if "MODULUS" not in cls.__dict__:
            return
        p = cls.MODULUS
        if p % 2 == 0 or p >= 1 << (8 * cls.BYTES):
            raise ValueError("MODULUS must be odd and fit in BYTES")
        s, t = 0, p - 1
        while t % 2 == 0:
            s, t = s + 1, t // 2
        cls.TWO_ADICITY, cls.ODD_PART = s, t
        z = 2
        while pow(z, (p - 1) // 2, p) != p - 1:
            z += 1
        cls.NON_RESIDUE = z

    def __init__(self, x=0):  # Build element from any int (reduced mod MODULUS).
        self.v = int(x) % type(self).MODULUS

    zero = classmethod(lambda cls: cls(0))  # Additive identity.

    one = classmethod(lambda cls: cls(1))  # Multiplicative identity.

    def to_int(self): return self.v  # Canonical integer form.

    def is_zero(self): return self.v == 0  # True for the additive identity.

    def inv(self):  # Multiplicative inverse in the same field.
        if self.v == 0: raise ZeroDivisionError("cannot invert zero")
        return type(self)(pow(self.v, -1, type(self).MODULUS))

    def _c(self, other):  # Coerce int/same-type operand into field element.
        cls = type(self)
        if isinstance(other, cls):
            return other
        if isinstance(other, int):
            return cls(other)
        raise TypeError(f"expected {cls.__name__} or int")

    def __add__(self, other):  # Field addition modulo MODULUS.
        v = self.v + self._c(other).v
        return type(self)(v - type(self).MODULUS if v >= type(self).MODULUS else v)

    __radd__ = __add__

    def __sub__(self, other):  # Field subtraction modulo MODULUS.
        v = self.v - self._c(other).v
        return type(self)(v + type(self).MODULUS if v < 0 else v)

    def __rsub__(self, other):  # int - element.
        return self._c(other) - self

    def __mul__(self, other):  # Field multiplication.
        return type(self)(self.v * self._c(other).v)

    __rmul__ = __mul__

    def __pow__(self, e):  # Exponentiation with modular power semantics.
        return (self.inv()) ** (-e) if e < 0 else type(self)(pow(self.v, e, type(self).MODULUS))

    def __truediv__(self, other):  # Division as multiply by inverse.
        return self * self._c(other).inv()

    def __neg__(self):  # Additive inverse modulo MODULUS.
        return self if self.v == 0 else type(self)(type(self).MODULUS - self.v)

    def __eq__(self, other):  # Equality with field elements or canonical ints.
        if isinstance(other, type(self)):
            return self.v == other.v
        return self.v == (other % type(self).MODULUS) if isinstance(other, int) else False

    def __hash__(self): return hash((type(self).__name__, self.v))  # Usable in sets/dict keys.

    def __int__(self): return self.v  # int(...) exposes canonical integer.

    def __repr__(self): return f"{type(self).__name__}({self.v})"  # Debug-friendly printable form.

    def legendre(self):  # Legendre symbol as 0, 1 or -1.
        if self.v == 0:
            return 0
        p = type(self).MODULUS
        return 1 if pow(self.v, (p - 1) // 2, p) == 1 else -1

    def sqrt(self):  # Tonelli-Shanks square root, None for non-residues.
        cls = type(self)
        p = cls.MODULUS
        if self.v == 0:
            return cls(0)
        if self.legendre() != 1:
            return None
        m, c = cls.TWO_ADICITY, pow(cls.NON_RESIDUE, cls.ODD_PART, p)
        t, r = pow(self.v, cls.ODD_PART, p), pow(self.v, (cls.ODD_PART + 1) // 2, p)
        while t != 1:
            i, t2 = 0, t
            while t2 != 1:
                t2, i = t2 * t2 % p, i + 1
            b = pow(c, 1 << (m - i - 1), p)
            m, c, t, r = i, b * b % p, t * b * b % p, r * b % p
        return cls(r)

    def to_bytes(self): return self.v.to_bytes(type(self).BYTES, "little")  # Canonical little-endian encoding.

    @classmethod
    def from_bytes(cls, data):  # Strict decoding: rejects non-canonical encodings.
        data = bytes(data)
        if len(data) != cls.BYTES:
            raise ValueError(f"{cls.__name__} encoding must be {cls.BYTES} bytes")
        x = int.from_bytes(data, "little")
        if x >= cls.MODULUS:
            raise ValueError(f"non-canonical {cls.__name__} encoding")
        return cls(x)

    @classmethod
    def from_uniform_bytes(cls, data):  # Wide reduction of a (>= 48 byte) hash output.
        return cls(int.from_bytes(bytes(data), "little"))

    @classmethod
    def random(cls, rng=None):  # Uniform element from `rng` (random.Random) or the OS.
        if rng is None:
            return cls(secrets.randbelow(cls.MODULUS))
        return cls(rng.randrange(cls.MODULUS))

class Fp(PrimeField):  # Pallas base field = Vesta scalar field.
    MODULUS = 0x40000000000000000000000000000000224698FC094CF91B992D30ED00000001  # Pallas p

class Fq(PrimeField):  # Pallas scalar field = Vesta base field.
    MODULUS = 0x40000000000000000000000000000000224698FC0994A8DD8C46EB2100000001  # Pallas q

Fr = Fq  # Scalar field of the primary circuit (Pallas scalars).
