"""Versioned binary and JSON encodings of proofs and public state.

## Binary layout

```text
magic    "GVNV"
version  u16                    FORMAT_VERSION
kind     u8                     ProofKind
scheme   u8 len + ascii         "nova"
curves   u8 len + ascii         "pallas/vesta"
payload  little-endian, length-prefixed vectors (u32 counts)
```

Field elements are 32-byte canonical little-endian; points are 64-byte
uncompressed `x || y` (all zeros = infinity) and are checked to lie on their
curve. Decoding raises `SerializationError` on any malformed input and
`VersionMismatchError` when the version, scheme or curve tag is not ours; a
value is only returned once the whole input has parsed.
"""

from __future__ import annotations

import json  # text encoding
from enum import IntEnum  # payload kinds

from codec import Reader, Writer  # little-endian framing
from curve import PASTA  # curve tags and point codecs
from decider import DeciderProof  # decider proof container
from errors import SerializationError, VersionMismatchError  # decode failures
from field import Fr  # circuit field
from ipa import IPAProof  # opening proofs
from nova import IVCProof, RelaxedInstance, StepRecord  # IVC containers
from polynomials import CompressedUniPoly  # sumcheck messages
from sumcheck import SumcheckInstanceProof  # sumcheck proofs

MAGIC = b"GVNV"  # Binary format magic.
FORMAT_VERSION = 1  # Bumped on any incompatible layout change.
SCHEME = "nova"  # Folding scheme tag.
CURVES = PASTA.name  # "pallas/vesta"

class ProofKind(IntEnum):  # Payload type tag.
    IVC_PROOF = 1
    DECIDER_PROOF = 2
    RELAXED_INSTANCE = 3
    PUBLIC_STATE = 4

_JSON_KINDS = {
    ProofKind.IVC_PROOF: "ivc_proof",
    ProofKind.DECIDER_PROOF: "decider_proof",
    ProofKind.RELAXED_INSTANCE: "relaxed_instance",
    ProofKind.PUBLIC_STATE: "public_state",
}

# ---------------------------------------------------------------------------
# Binary
# ---------------------------------------------------------------------------

def _header(kind: ProofKind) -> Writer:
    w = Writer()
    w.raw(MAGIC)
    w.u16(FORMAT_VERSION)
    w.u8(kind)
    w.string(SCHEME)
    w.string(CURVES)
    return w

def _open(data, kind: ProofKind) -> Reader:  # Validate the header and return a reader at the payload.
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise SerializationError("expected bytes")
    r = Reader(bytes(data))
    if r.take(4) != MAGIC:
        raise SerializationError("bad magic")
    version = r.u16()
    if version != FORMAT_VERSION:
        raise VersionMismatchError(f"format version {version}, expected {FORMAT_VERSION}")
    got_kind = r.u8()
    scheme, curves = r.string(), r.string()
    if scheme != SCHEME or curves != CURVES:
        raise VersionMismatchError(f"proof is for {scheme} over {curves}, expected {SCHEME} over {CURVES}")
    if got_kind != kind:
        raise SerializationError(f"payload kind {got_kind}, expected {int(kind)}")
    return r

def _write_instance(w: Writer, U: RelaxedInstance):
    w.point(PASTA.primary, U.comm_W)
    w.point(PASTA.primary, U.comm_E)
    w.scalar(U.u)
    w.scalars(U.x)

def _read_instance(r: Reader) -> RelaxedInstance:
    comm_W, comm_E = r.point(PASTA.primary), r.point(PASTA.primary)
    return RelaxedInstance(comm_W, comm_E, r.scalar(Fr), tuple(r.scalars(Fr)))

def _write_sumcheck(w: Writer, proof: SumcheckInstanceProof):
    w.u32(len(proof.compressed_polys))
    for poly in proof.compressed_polys:
        w.scalars(poly.coeffs_except_linear_term)

def _read_sumcheck(r: Reader) -> SumcheckInstanceProof:
    n = r.u32()
    if n > r.remaining():
        raise SerializationError("unexpected EOF")
    return SumcheckInstanceProof([CompressedUniPoly(r.scalars(Fr)) for _ in range(n)])

def _write_ipa(w: Writer, p: IPAProof):
    w.u32(len(p.L))
    for P in list(p.L) + list(p.R):
        w.point(PASTA.primary, P)
    w.scalar(p.a)
    w.scalar(p.blind)

def _read_ipa(r: Reader) -> IPAProof:
    k = r.u32()
    if 128 * k > r.remaining():
        raise SerializationError("unexpected EOF")
    L = [r.point(PASTA.primary) for _ in range(k)]
    R = [r.point(PASTA.primary) for _ in range(k)]
    return IPAProof(L, R, r.scalar(Fr), r.scalar(Fr))

def _write_steps(w: Writer, steps):
    w.u32(len(steps))
    for rec in steps:
        w.u64(rec.index)
        w.scalars(rec.z_out)
        w.point(PASTA.primary, rec.comm_W)
        w.point(PASTA.primary, rec.comm_T)

def _read_steps(r: Reader) -> tuple:
    n = r.u32()
    if n > r.remaining():
        raise SerializationError("unexpected EOF")
    steps = []
    for _ in range(n):
        index = r.u64()
        z_out = tuple(r.scalars(Fr))
        steps.append(StepRecord(index, z_out, r.point(PASTA.primary), r.point(PASTA.primary)))
    return tuple(steps)

def encode_ivc_proof(proof: IVCProof) -> bytes:
    w = _header(ProofKind.IVC_PROOF)
    w.u64(proof.step_count)
    w.scalars(proof.z_0)
    w.scalars(proof.final_public_output)
    _write_instance(w, proof.running_instance)
    _write_steps(w, proof.steps)
    w.point(PASTA.secondary, proof.cyclefold_commitment)
    return w.getvalue()

def decode_ivc_proof(data: bytes) -> IVCProof:
    r = _open(data, ProofKind.IVC_PROOF)
    step_count = r.u64()
    z_0, z_n = tuple(r.scalars(Fr)), tuple(r.scalars(Fr))
    U = _read_instance(r)
    steps = _read_steps(r)
    cf = r.point(PASTA.secondary)
    r.expect_end()
    return IVCProof(step_count, z_0, z_n, U, steps, cf)

def encode_decider_proof(proof: DeciderProof) -> bytes:
    w = _header(ProofKind.DECIDER_PROOF)
    w.u64(proof.step_count)
    w.scalars(proof.z_0)
    w.scalars(proof.z_n)
    _write_instance(w, proof.instance)
    _write_steps(w, proof.steps)
    _write_sumcheck(w, proof.outer)
    w.scalars(proof.outer_claims)
    _write_sumcheck(w, proof.inner)
    w.scalar(proof.eval_W)
    _write_ipa(w, proof.ipa_W)
    _write_ipa(w, proof.ipa_E)
    return w.getvalue()

def decode_decider_proof(data: bytes) -> DeciderProof:
    r = _open(data, ProofKind.DECIDER_PROOF)
    step_count = r.u64()
    z_0, z_n = tuple(r.scalars(Fr)), tuple(r.scalars(Fr))
    U = _read_instance(r)
    steps = _read_steps(r)
    outer = _read_sumcheck(r)
    claims = tuple(r.scalars(Fr))
    inner = _read_sumcheck(r)
    eval_W = r.scalar(Fr)
    ipa_W, ipa_E = _read_ipa(r), _read_ipa(r)
    r.expect_end()
    return DeciderProof(step_count, z_0, z_n, U, steps, outer, claims, inner, eval_W, ipa_W, ipa_E)

def encode_instance(U: RelaxedInstance) -> bytes:  # Running-instance snapshot.
    w = _header(ProofKind.RELAXED_INSTANCE)
    _write_instance(w, U)
    return w.getvalue()

def decode_instance(data: bytes) -> RelaxedInstance:
    r = _open(data, ProofKind.RELAXED_INSTANCE)
    U = _read_instance(r)
    r.expect_end()
    return U

def encode_public_state(z) -> bytes:  # A public state vector z_i.
    w = _header(ProofKind.PUBLIC_STATE)
    w.scalars([x if isinstance(x, Fr) else Fr(x) for x in z])
    return w.getvalue()

def decode_public_state(data: bytes) -> tuple:
    r = _open(data, ProofKind.PUBLIC_STATE)
    z = tuple(r.scalars(Fr))
    r.expect_end()
    return z

# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def _js_scalar(x):
    return str(int(x))

def _js_scalars(xs):
    return [_js_scalar(x) for x in xs]

def _js_point(curve, P):
    return curve.encode_point(P).hex()

def _py_scalar(s):
    if not isinstance(s, str) or not (s.isascii() and s.isdigit()):
        raise SerializationError(f"field element must be a decimal string, got {s!r}")
    v = int(s)
    if v >= Fr.MODULUS:
        raise SerializationError("non-canonical field element")
    return Fr(v)

def _py_scalars(xs):
    if not isinstance(xs, list):
        raise SerializationError("expected a list of field elements")
    return tuple(_py_scalar(x) for x in xs)

def _py_point(curve, s):
    try:
        return curve.decode_point(bytes.fromhex(s))
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"bad {curve.name} point: {exc}") from None

def _js_instance(U):
    return {
        "comm_W": _js_point(PASTA.primary, U.comm_W),
        "comm_E": _js_point(PASTA.primary, U.comm_E),
        "u": _js_scalar(U.u),
        "x": _js_scalars(U.x),
    }

def _py_instance(d):
    return RelaxedInstance(
        _py_point(PASTA.primary, d["comm_W"]), _py_point(PASTA.primary, d["comm_E"]),
        _py_scalar(d["u"]), _py_scalars(d["x"]),
    )

def _js_ipa(p):
    return {
        "L": [_js_point(PASTA.primary, P) for P in p.L],
        "R": [_js_point(PASTA.primary, P) for P in p.R],
        "a": _js_scalar(p.a),
        "blind": _js_scalar(p.blind),
    }

def _py_ipa(d):
    return IPAProof(
        [_py_point(PASTA.primary, P) for P in d["L"]], [_py_point(PASTA.primary, P) for P in d["R"]],
        _py_scalar(d["a"]), _py_scalar(d["blind"]),
    )

def _js_sumcheck(p):
    return [_js_scalars(poly.coeffs_except_linear_term) for poly in p.compressed_polys]

def _py_sumcheck(d):
    return SumcheckInstanceProof([CompressedUniPoly(list(_py_scalars(c))) for c in d])

def _js_steps(steps):
    return [
        {
            "index": rec.index,
            "z_out": _js_scalars(rec.z_out),
            "comm_W": _js_point(PASTA.primary, rec.comm_W),
            "comm_T": _js_point(PASTA.primary, rec.comm_T),
        }
        for rec in steps
    ]

def _py_steps(d):
    if not isinstance(d, list):
        raise SerializationError("expected a list of step records")
    return tuple(
        StepRecord(
            _py_count(s["index"]), _py_scalars(s["z_out"]),
            _py_point(PASTA.primary, s["comm_W"]), _py_point(PASTA.primary, s["comm_T"]),
        )
        for s in d
    )

def _dump(kind, body):
    doc = {"version": FORMAT_VERSION, "scheme": SCHEME, "curves": CURVES, "kind": _JSON_KINDS[kind]}
    doc.update(body)
    return json.dumps(doc, separators=(",", ":"))

def _load(text, kind, build):  # Parse, check tags, build; every structural error becomes SerializationError.
    try:
        doc = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"invalid JSON: {exc}") from None
    if not isinstance(doc, dict):
        raise SerializationError("expected a JSON object")
    if doc.get("version") != FORMAT_VERSION:
        raise VersionMismatchError(f"format version {doc.get('version')!r}, expected {FORMAT_VERSION}")
    if doc.get("scheme") != SCHEME or doc.get("curves") != CURVES:
        raise VersionMismatchError(f"proof is for {doc.get('scheme')!r} over {doc.get('curves')!r}")
    if doc.get("kind") != _JSON_KINDS[kind]:
        raise SerializationError(f"payload kind {doc.get('kind')!r}, expected {_JSON_KINDS[kind]!r}")
    try:
        return build(doc)
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise SerializationError(f"malformed {_JSON_KINDS[kind]}: {exc!r}") from None

def _py_count(v):
    if not isinstance(v, int) or isinstance(v, bool) or v < 0:
        raise SerializationError("expected a non-negative integer")
    return v

def ivc_proof_to_json(proof: IVCProof) -> str:
    return _dump(ProofKind.IVC_PROOF, {
        "step_count": proof.step_count,
        "z_0": _js_scalars(proof.z_0),
        "final_public_output": _js_scalars(proof.final_public_output),
        "running_instance": _js_instance(proof.running_instance),
        "steps": _js_steps(proof.steps),
        "cyclefold_commitment": _js_point(PASTA.secondary, proof.cyclefold_commitment),
    })

def ivc_proof_from_json(text: str) -> IVCProof:
    def build(d):
        return IVCProof(
            _py_count(d["step_count"]), _py_scalars(d["z_0"]), _py_scalars(d["final_public_output"]),
            _py_instance(d["running_instance"]), _py_steps(d["steps"]),
            _py_point(PASTA.secondary, d["cyclefold_commitment"]),
        )

    return _load(text, ProofKind.IVC_PROOF, build)

def decider_proof_to_json(proof: DeciderProof) -> str:
    return _dump(ProofKind.DECIDER_PROOF, {
        "step_count": proof.step_count,
        "z_0": _js_scalars(proof.z_0),
        "z_n": _js_scalars(proof.z_n),
        "instance": _js_instance(proof.instance),
        "steps": _js_steps(proof.steps),
        "outer": _js_sumcheck(proof.outer),
        "outer_claims": _js_scalars(proof.outer_claims),
        "inner": _js_sumcheck(proof.inner),
        "eval_W": _js_scalar(proof.eval_W),
        "ipa_W": _js_ipa(proof.ipa_W),
        "ipa_E": _js_ipa(proof.ipa_E),
    })

def decider_proof_from_json(text: str) -> DeciderProof:
    def build(d):
        return DeciderProof(
            _py_count(d["step_count"]), _py_scalars(d["z_0"]), _py_scalars(d["z_n"]),
            _py_instance(d["instance"]), _py_steps(d["steps"]), _py_sumcheck(d["outer"]),
            _py_scalars(d["outer_claims"]), _py_sumcheck(d["inner"]), _py_scalar(d["eval_W"]),
            _py_ipa(d["ipa_W"]), _py_ipa(d["ipa_E"]),
        )

    return _load(text, ProofKind.DECIDER_PROOF, build)
