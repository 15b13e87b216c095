"""Little-endian byte reader/writer shared by the artifact and proof codecs."""

from __future__ import annotations

from errors import SerializationError  # default decode failure

class Reader:  # Minimal little-endian reader; raises `error` on truncation or bad values.
    def __init__(self, data: bytes, error=SerializationError):
        self.data = bytes(data)
        self.i = 0
        self.error = error

    def remaining(self) -> int:
        return len(self.data) - self.i

    def take(self, n: int) -> bytes:
        n = int(n)
        if n < 0 or self.i + n > len(self.data):
            raise self.error("unexpected EOF")
        out = self.data[self.i : self.i + n]
        self.i += n
        return out

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self.take(2), "little")

    def u32(self) -> int:
        return int.from_bytes(self.take(4), "little")

    def u64(self) -> int:
        return int.from_bytes(self.take(8), "little")

    def uint(self, n: int) -> int:  # Unsigned little-endian integer of n bytes.
        return int.from_bytes(self.take(n), "little")

    def string(self) -> str:  # u8 length + ascii.
        raw = self.take(self.u8())
        try:
            return raw.decode("ascii")
        except UnicodeDecodeError:
            raise self.error("non-ascii tag") from None

    def scalar(self, field):  # Canonical 32-byte field element.
        try:
            return field.from_bytes(self.take(field.BYTES))
        except ValueError as exc:
            raise self.error(str(exc)) from None

    def scalars(self, field) -> list:  # u32 count + elements.
        n = self.u32()
        if n * field.BYTES > self.remaining():
            raise self.error("unexpected EOF")
        return [self.scalar(field) for _ in range(n)]

    def point(self, curve):  # Validated 64-byte point.
        try:
            return curve.decode_point(self.take(64))
        except ValueError as exc:
            raise self.error(str(exc)) from None

    def expect_end(self):
        if self.remaining():
            raise self.error(f"{self.remaining()} trailing bytes")

class Writer:  # Accumulates the little-endian encoding.
    def __init__(self):
        self.parts = []

    def raw(self, b: bytes):
        self.parts.append(bytes(b))

    def u8(self, x: int):
        self.raw(int(x).to_bytes(1, "little"))

    def u16(self, x: int):
        self.raw(int(x).to_bytes(2, "little"))

    def u32(self, x: int):
        self.raw(int(x).to_bytes(4, "little"))

    def u64(self, x: int):
        self.raw(int(x).to_bytes(8, "little"))

    def uint(self, x: int, n: int):
        self.raw(int(x).to_bytes(n, "little"))

    def string(self, s: str):
        b = s.encode("ascii")
        self.u8(len(b))
        self.raw(b)

    def scalar(self, x):
        self.raw(x.to_bytes())

    def scalars(self, xs):
        xs = list(xs)
        self.u32(len(xs))
        for x in xs:
            self.scalar(x)

    def point(self, curve, P):
        self.raw(curve.encode_point(P))

    def getvalue(self) -> bytes:
        return b"".join(self.parts)
