"""Step input helpers: initial state, random elements and string packing.

Strings are packed big-endian into 31-byte chunks, each placed after a leading
zero byte so every chunk is below the field modulus.
"""

from dataclasses import dataclass, field as dc_field  # private-input container

from errors import MissingPrivateInputError  # empty non-chaff input
from field import Fr  # circuit field

SECRET_FIELD_LENGTH = 6  # Field elements a packed phrase occupies.
MAX_SECRET_LENGTH = 180  # Longest phrase (bytes) that fits SECRET_FIELD_LENGTH chunks.
MAX_USERNAME_LENGTH = 30  # Longest short string (bytes) that fits one element.
CHUNK_BYTES = 31  # Payload bytes per packed element.

def zero_state(state_len):  # z_0 of all zeros.
    return tuple(Fr.zero() for _ in range(int(state_len)))

def random_field_element(rng=None):  # Uniform circuit-field element (OS randomness unless `rng`).
    return Fr.random(rng)

def pack_phrase(phrase, num_chunks=SECRET_FIELD_LENGTH, max_len=MAX_SECRET_LENGTH):  # Phrase -> num_chunks elements.
    data = phrase.encode() if isinstance(phrase, str) else bytes(phrase)
    if len(data) > max_len:
        raise ValueError(f"Phrase must be <= {max_len} characters")
    out = []
    for i in range(num_chunks):
        chunk = data[i * CHUNK_BYTES : (i + 1) * CHUNK_BYTES]
        out.append(Fr(int.from_bytes(b"\x00" + chunk.ljust(CHUNK_BYTES, b"\x00"), "big")))
    return out

def pack_username(username, max_len=MAX_USERNAME_LENGTH):  # Short string -> one element (bytes[1:] big-endian).
    data = username.encode() if isinstance(username, str) else bytes(username)
    if len(data) > max_len:
        raise ValueError(f"Username must be <= {max_len} characters")
    return Fr(int.from_bytes(b"\x00" + data.ljust(31, b"\x00"), "big"))

@dataclass
class PrivateInput:  # Named private inputs for one step; `chaff` fills missing signals with noise.
    values: dict = dc_field(default_factory=dict)
    chaff: bool = False

    def uninitialized(self):  # No values and not a chaff step.
        return not self.values and not self.chaff

    def marshal(self, declared, rng=None):  # -> {name: [int, ...]} covering every declared (name, size).
        if self.uninitialized() and declared:
            raise MissingPrivateInputError("No private input provided to step circuit")
        out = {name: _as_ints(v) for name, v in self.values.items()}
        for name, size in declared:
            if name in out:
                if len(out[name]) != size:
                    raise MissingPrivateInputError(f"private input {name!r} has {len(out[name])} values, expected {size}")
                continue
            if not self.chaff:
                raise MissingPrivateInputError(f"private input {name!r} not provided")
            out[name] = [int(Fr.random(rng)) for _ in range(size)]
        return out

def _as_ints(v):  # Scalar or sequence -> list of canonical ints.
    if isinstance(v, (list, tuple)):
        return [int(x) % Fr.MODULUS for x in v]
    return [int(v) % Fr.MODULUS]
