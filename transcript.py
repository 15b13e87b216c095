import hashlib  # blake2b hash primitive

class Blake2bTranscript:  # Fiat-Shamir transcript over blake2b with per-round tags.
    def __init__(self, label):  # Initialize transcript state from domain label.
        label_b = label.encode() if isinstance(label, str) else bytes(label)
        if len(label_b) > 32:
            raise ValueError("label must be <= 32 bytes")
        label_padded = label_b + b"\x00" * (32 - len(label_b))
        self.state = hashlib.blake2b(label_padded, digest_size=32).digest()
        self.n_rounds = 0

    new = classmethod(lambda cls, label: cls(label))  # Constructor alias.

    @staticmethod
    def _label_word(label_b):  # Encode label as 32-byte right-padded word.
        if len(label_b) > 32:
            raise ValueError("label must be <= 32 bytes")
        return label_b + b"\x00" * (32 - len(label_b))

    @staticmethod
    def _label_with_len_word(label_b, n):  # Encode 24-byte label + u64(be) length in 32 bytes.
        if len(label_b) > 24:
            raise ValueError("label must be <= 24 bytes for length-prefixed methods")
        return label_b + b"\x00" * (24 - len(label_b)) + int(n).to_bytes(8, "big")

    def _round_tag(self):  # Encode the 32-byte round tag (zero28 || be_u32(n_rounds)).
        return b"\x00" * 28 + int(self.n_rounds).to_bytes(4, "big")

    def _absorb(self, payload):  # Update state := H(state || round_tag || payload), increment round.
        h = hashlib.blake2b(digest_size=32)
        h.update(self.state)
        h.update(self._round_tag())
        h.update(payload)
        self.state = h.digest()
        self.n_rounds += 1

    def _challenge_block32(self):  # Draw 32 bytes: rand := H(state || round_tag), then state := rand.
        h = hashlib.blake2b(digest_size=32)
        h.update(self.state)
        h.update(self._round_tag())
        rand = h.digest()
        self.state = rand
        self.n_rounds += 1
        return rand

    def raw_append_bytes(self, payload):  # Append raw bytes (one absorb).
        self._absorb(bytes(payload))

    def raw_append_label(self, label):  # Append fixed-size label word (one absorb).
        label_b = label.encode() if isinstance(label, str) else bytes(label)
        self._absorb(self._label_word(label_b))

    def raw_append_label_with_len(self, label, n):  # Append packed label+len prefix (one absorb).
        label_b = label.encode() if isinstance(label, str) else bytes(label)
        self._absorb(self._label_with_len_word(label_b, n))

    def raw_append_u64(self, x):  # Append u64 as a 32-byte big-endian word (one absorb).
        self._absorb(b"\x00" * 24 + int(x).to_bytes(8, "big"))

    def raw_append_scalar(self, x):  # Append a field element (or int) as 32 big-endian bytes (one absorb).
        self._absorb(int(x).to_bytes(32, "big"))

    def append_bytes(self, label, data):  # Append labeled bytes with length prefix (two absorbs).
        data_b = bytes(data)
        self.raw_append_label_with_len(label, len(data_b))
        self.raw_append_bytes(data_b)

    def append_u64(self, label, x):  # Append labeled u64 (two absorbs).
        self.raw_append_label(label)
        self.raw_append_u64(x)

    def append_scalar(self, label, x):  # Append labeled scalar (two absorbs).
        self.raw_append_label(label)
        self.raw_append_scalar(x)

    def append_scalars(self, label, xs):  # Append labeled list of scalars (1 + N absorbs).
        xs = list(xs)
        self.raw_append_label_with_len(label, len(xs))
        for x in xs:
            self.raw_append_scalar(x)

    def append_point(self, label, curve, P):  # Append labeled curve point in its 64-byte encoding.
        self.append_bytes(label, curve.encode_point(P))

    def challenge_bytes(self, n):  # Draw n bytes using ceil(n/32) blocks.
        n = int(n)
        out = bytearray(n)
        remaining = n
        start = 0
        while remaining > 32:
            out[start : start + 32] = self._challenge_block32()
            start += 32
            remaining -= 32
        full = self._challenge_block32()
        out[start : start + remaining] = full[:remaining]
        return bytes(out)

    def challenge_scalar(self, field=None):  # Draw a 128-bit challenge in `field` (default: circuit field).
        if field is None:
            from field import Fr  # local import to keep module dependency minimal

            field = Fr
        return field(int.from_bytes(self.challenge_bytes(16), "big"))

    def challenge_scalar_wide(self, field=None):  # Draw a full-width element via 64-byte wide reduction.
        if field is None:
            from field import Fr  # local import to keep module dependency minimal

            field = Fr
        return field.from_uniform_bytes(self.challenge_bytes(64))

    def challenge_vector(self, n, field=None):  # Draw a vector of n challenges.
        return [self.challenge_scalar(field) for _ in range(int(n))]

