"""Circom circuit adapter.

Loads a compiled constraint system (iden3 `.r1cs` binary or the JSON that
`snarkjs r1cs export json` prints) and pairs it with a witness oracle: any
object exposing

```text
wire_counts() -> WireCounts
evaluate(inputs: dict[str, list[int]]) -> list[int] | bytes (.wtns)
```

Circom wire order is `[1, public outputs, public inputs, private inputs,
intermediates]`. For a step circuit the public outputs are `z_{i+1}` and the
public inputs (`ivc_input`) are `z_i`.
"""

from __future__ import annotations

import json  # snarkjs JSON export
import logging  # module logger
from dataclasses import dataclass, field as dc_field  # artifact containers

from codec import Reader, Writer  # little-endian framing
from debuglog import debug_event  # NDJSON debug records
from errors import ArithmetizationError, CircuitLoadError, WitnessGenerationError  # adapter failures
from field import Fr  # circuit field
from inputs import PrivateInput  # private-input marshalling
from r1cs import LC, R1CS, R1CSConstraint, lc  # constraint system

logger = logging.getLogger(__name__)

R1CS_MAGIC = b"r1cs"  # iden3 r1cs file magic.
WTNS_MAGIC = b"wtns"  # iden3 witness file magic.
SECTION_HEADER, SECTION_CONSTRAINTS, SECTION_WIRE2LABEL = 1, 2, 3  # r1cs section ids.

@dataclass(frozen=True)
class WireCounts:  # Wire metadata every artifact must expose.
    n_wires: int
    n_public_outputs: int
    n_public_inputs: int
    n_private_inputs: int

    @property
    def n_public(self) -> int:
        return self.n_public_outputs + self.n_public_inputs

@dataclass(frozen=True)
class R1CSFile:  # Parsed iden3 `.r1cs` artifact.
    prime: int
    counts: WireCounts
    constraints: tuple
    n_labels: int = 0
    wire_to_label: tuple = ()
    field_size: int = 32

    @classmethod
    def from_bytes(cls, data: bytes) -> "R1CSFile":  # Parse the iden3 binary format (version 1).
        r = Reader(data, CircuitLoadError)
        if r.take(4) != R1CS_MAGIC:
            raise CircuitLoadError("not an r1cs file (bad magic)")
        version = r.u32()
        if version != 1:
            raise CircuitLoadError(f"unsupported r1cs version {version}")
        sections = {}
        for _ in range(r.u32()):
            sec_type = r.u32()
            body = r.take(r.u64())
            if sec_type in sections:
                raise CircuitLoadError(f"duplicate r1cs section {sec_type}")
            sections[sec_type] = body
        r.expect_end()
        if SECTION_HEADER not in sections or SECTION_CONSTRAINTS not in sections:
            raise CircuitLoadError("r1cs file lacks header or constraints section")
        skipped = sorted(set(sections) - {SECTION_HEADER, SECTION_CONSTRAINTS, SECTION_WIRE2LABEL})
        if skipped:
            logger.info("ignoring r1cs sections %s", skipped)

        h = Reader(sections[SECTION_HEADER], CircuitLoadError)
        n8 = h.u32()
        if n8 == 0 or n8 % 8:
            raise CircuitLoadError(f"invalid field size {n8}")
        prime = h.uint(n8)
        counts = WireCounts(h.u32(), h.u32(), h.u32(), h.u32())
        n_labels, m = h.u64(), h.u32()
        h.expect_end()

        c = Reader(sections[SECTION_CONSTRAINTS], CircuitLoadError)

        def read_lc():
            terms = []
            for _ in range(c.u32()):
                wire, coeff = c.u32(), c.uint(n8)
                if coeff >= prime:
                    raise CircuitLoadError("non-canonical coefficient")
                terms.append((wire, coeff))
            return LC(terms)

        constraints = tuple(R1CSConstraint(read_lc(), read_lc(), read_lc()) for _ in range(m))
        c.expect_end()

        labels = ()
        if SECTION_WIRE2LABEL in sections:
            w = Reader(sections[SECTION_WIRE2LABEL], CircuitLoadError)
            labels = tuple(w.u64() for _ in range(counts.n_wires))
            w.expect_end()
        return cls(prime, counts, constraints, n_labels, labels, n8)

    @classmethod
    def from_json(cls, doc) -> "R1CSFile":  # Parse `snarkjs r1cs export json` output (str or dict).
        try:
            if isinstance(doc, (str, bytes)):
                doc = json.loads(doc)
            prime = int(doc["prime"])
            counts = WireCounts(
                int(doc["nVars"]), int(doc["nOutputs"]), int(doc["nPubInputs"]), int(doc["nPrvInputs"])
            )
            constraints = []
            for row in doc["constraints"]:
                if len(row) != 3:
                    raise CircuitLoadError("constraint must have three linear combinations")
                constraints.append(R1CSConstraint(*(LC([(int(k), int(v)) for k, v in m.items()]) for m in row)))
            if "nConstraints" in doc and int(doc["nConstraints"]) != len(constraints):
                raise CircuitLoadError("nConstraints disagrees with constraints list")
            labels = tuple(int(x) for x in doc.get("map", ()))
            return cls(prime, counts, tuple(constraints), int(doc.get("nLabels", 0)), labels, int(doc.get("n8", 32)))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CircuitLoadError(f"malformed r1cs json: {exc}") from exc

    def to_bytes(self) -> bytes:  # Write the iden3 binary format (version 1).
        n8 = self.field_size
        hdr = Writer()
        hdr.u32(n8)
        hdr.uint(self.prime, n8)
        for x in (self.counts.n_wires, self.counts.n_public_outputs, self.counts.n_public_inputs, self.counts.n_private_inputs):
            hdr.u32(x)
        hdr.u64(self.n_labels)
        hdr.u32(len(self.constraints))
        cons = Writer()
        for row in self.constraints:
            for lc_ in (row.a, row.b, row.c):
                cons.u32(len(lc_.terms))
                for wire, coeff in lc_.terms:
                    cons.u32(wire)
                    cons.uint(coeff, n8)
        sections = [(SECTION_HEADER, hdr.getvalue()), (SECTION_CONSTRAINTS, cons.getvalue())]
        if self.wire_to_label:
            lab = Writer()
            for x in self.wire_to_label:
                lab.u64(x)
            sections.append((SECTION_WIRE2LABEL, lab.getvalue()))
        out = Writer()
        out.raw(R1CS_MAGIC)
        out.u32(1)
        out.u32(len(sections))
        for sec_type, body in sections:
            out.u32(sec_type)
            out.u64(len(body))
            out.raw(body)
        return out.getvalue()

def parse_wtns(data: bytes) -> list:  # Parse an iden3 `.wtns` witness file into canonical ints.
    r = Reader(data, CircuitLoadError)
    if r.take(4) != WTNS_MAGIC:
        raise CircuitLoadError("not a wtns file (bad magic)")
    r.u32()  # version
    sections = {}
    for _ in range(r.u32()):
        sec_type = r.u32()
        sections[sec_type] = r.take(r.u64())
    if 1 not in sections or 2 not in sections:
        raise CircuitLoadError("wtns file lacks header or witness section")
    h = Reader(sections[1], CircuitLoadError)
    n8 = h.u32()
    prime = h.uint(n8)
    n = h.u32()
    if prime != Fr.MODULUS:
        raise CircuitLoadError("wtns field modulus does not match the circuit field")
    body = Reader(sections[2], CircuitLoadError)
    values = [body.uint(n8) for _ in range(n)]
    body.expect_end()
    return values

class FunctionWitnessOracle:  # Witness oracle backed by a plain callable.
    def __init__(self, fn, counts: WireCounts):
        self.fn = fn
        self.counts = counts

    def wire_counts(self) -> WireCounts:
        return self.counts

    def evaluate(self, inputs):
        out = self.fn(inputs)
        return parse_wtns(out) if isinstance(out, (bytes, bytearray)) else out

class CircomCircuit:  # A compiled step circuit plus its witness oracle.
    def __init__(self, r1cs_file: R1CSFile, oracle, state_len: int, *, private_inputs=(), input_name="ivc_input"):
        self.r1cs_file = r1cs_file
        self.oracle = oracle
        self.state_len = int(state_len)
        self.private_inputs = tuple((str(n), int(s)) for n, s in private_inputs)  # Declared (name, size) pairs.
        self.input_name = input_name
        self._r1cs = None

    @classmethod
    def from_r1cs_bytes(cls, data: bytes, oracle, state_len: int, **kw) -> "CircomCircuit":
        return cls(R1CSFile.from_bytes(data), oracle, state_len, **kw)

    @classmethod
    def from_r1cs_json(cls, doc, oracle, state_len: int, **kw) -> "CircomCircuit":
        return cls(R1CSFile.from_json(doc), oracle, state_len, **kw)

    def wire_counts(self) -> WireCounts:
        return self.r1cs_file.counts

    def compile(self) -> R1CS:  # Validate the artifact against the folding scheme and build the R1CS.
        if self._r1cs is not None:
            return self._r1cs
        f, k = self.r1cs_file, self.state_len
        if f.prime != Fr.MODULUS:
            raise CircuitLoadError(f"circuit prime {f.prime} is not the Pallas scalar field")
        if k < 1:
            raise CircuitLoadError("state_len must be positive")
        if f.counts.n_public_outputs != k or f.counts.n_public_inputs != k:
            raise CircuitLoadError(
                f"step circuit must expose {k} public outputs and {k} public inputs, "
                f"got {f.counts.n_public_outputs} and {f.counts.n_public_inputs}"
            )
        if f.counts.n_wires < 1 + 2 * k + f.counts.n_private_inputs:
            raise CircuitLoadError("wire count smaller than the declared public/private wires")
        oracle_counts = self.oracle.wire_counts()
        if oracle_counts != f.counts:
            raise CircuitLoadError(f"witness oracle reports {oracle_counts}, artifact declares {f.counts}")
        try:
            self._r1cs = R1CS(f.constraints, f.counts.n_wires, f.counts.n_public)
        except ValueError as exc:
            raise CircuitLoadError(str(exc)) from exc
        debug_event(
            logger, "circom.py:compile", "compiled step circuit",
            n_wires=f.counts.n_wires, n_constraints=len(f.constraints), state_len=k,
        )
        return self._r1cs

    def generate_witness(self, step_input, step_private_aux=None, *, rng=None) -> list:  # Full assignment for z_i.
        k = self.state_len
        z = [int(v) % Fr.MODULUS for v in step_input]
        if len(z) != k:
            raise WitnessGenerationError(f"step input has {len(z)} elements, expected {k}")
        aux = step_private_aux if isinstance(step_private_aux, PrivateInput) else PrivateInput(dict(step_private_aux or {}))
        inputs = {self.input_name: z}
        inputs.update(aux.marshal(self.private_inputs, rng))
        try:
            raw = self.oracle.evaluate(inputs)
        except ArithmetizationError:
            raise
        except Exception as exc:
            raise WitnessGenerationError(f"Failed to calculate witness: {exc}") from exc
        raw = [int(v) if isinstance(v, Fr) else v for v in raw]
        n = self.r1cs_file.counts.n_wires
        if len(raw) != n:
            raise WitnessGenerationError(f"witness has {len(raw)} entries, expected {n}")
        for v in raw:
            if not isinstance(v, int) or not 0 <= v < Fr.MODULUS:
                raise WitnessGenerationError(f"witness value {v!r} is not a canonical field element")
        if raw[0] != 1:
            raise WitnessGenerationError("witness wire 0 must be 1")
        if raw[1 + k : 1 + 2 * k] != z:
            raise WitnessGenerationError("witness does not echo the step input")
        return [Fr(v) for v in raw]

    def step_native(self, z_i, step_private_aux=None, *, rng=None) -> tuple:  # z_{i+1} without arithmetization.
        w = self.generate_witness(z_i, step_private_aux, rng=rng)
        return tuple(w[1 : 1 + self.state_len])

class _BuilderOracle:  # Evaluates CircuitBuilder rules in declaration order.
    def __init__(self, counts, order, sources, rules):
        self.counts = counts
        self.order = order  # wire names in wire order
        self.sources = sources  # name -> (input name, position)
        self.rules = rules  # [(name, fn)]

    def wire_counts(self):
        return self.counts

    def evaluate(self, inputs):
        env = {"one": 1}
        for name, (src, j) in self.sources.items():
            env[name] = int(inputs[src][j]) % Fr.MODULUS
        for name, fn in self.rules:
            env[name] = int(fn(env)) % Fr.MODULUS
        return [env[name] for name in self.order]

@dataclass
class CircuitBuilder:  # Assemble a small Circom-layout step circuit in Python.
    state_len: int
    input_name: str = "ivc_input"
    output_name: str = "ivc_output"
    _private: list = dc_field(default_factory=list, init=False, repr=False)
    _signals: list = dc_field(default_factory=list, init=False, repr=False)
    _outputs: dict = dc_field(default_factory=dict, init=False, repr=False)
    _constraints: list = dc_field(default_factory=list, init=False, repr=False)

    def inp(self, j):  # Name of public input wire j (z_i[j]).
        return f"{self.input_name}[{j}]"

    def out(self, j):  # Name of public output wire j (z_{i+1}[j]).
        return f"{self.output_name}[{j}]"

    def private_input(self, name, size=None):  # Declare `name` (scalar) or `name[0..size-1]`.
        self._private.append((name, size))
        return self

    def signal(self, name, compute):  # Intermediate wire computed from the env of earlier wires.
        self._signals.append((name, compute))
        return self

    def output(self, j, compute):  # Rule for public output j.
        self._outputs[int(j)] = compute
        self._signals.append((self.out(j), compute))
        return self

    def enforce(self, a, b, c):  # Constraint <a,z> * <b,z> = <c,z> over signal-name expressions.
        self._constraints.append((a, b, c))
        return self

    def build(self) -> CircomCircuit:
        k = self.state_len
        missing = [j for j in range(k) if j not in self._outputs]
        if missing:
            raise CircuitLoadError(f"no rule for outputs {missing}")
        order = ["one"] + [self.out(j) for j in range(k)] + [self.inp(j) for j in range(k)]
        sources = {self.inp(j): (self.input_name, j) for j in range(k)}
        declared = []
        for name, size in self._private:
            if size is None:
                order.append(name)
                sources[name] = (name, 0)
                declared.append((name, 1))
            else:
                for j in range(size):
                    order.append(f"{name}[{j}]")
                    sources[f"{name}[{j}]"] = (name, j)
                declared.append((name, size))
        n_private = len(order) - 1 - 2 * k
        order += [name for name, _ in self._signals if name not in set(order)]
        names = {name: i for i, name in enumerate(order)}
        constraints = tuple(R1CSConstraint(lc(a, names), lc(b, names), lc(c, names)) for a, b, c in self._constraints)
        counts = WireCounts(len(order), k, k, n_private)
        r1cs_file = R1CSFile(Fr.MODULUS, counts, constraints, len(order), tuple(range(len(order))))
        oracle = _BuilderOracle(counts, order, sources, list(self._signals))
        return CircomCircuit(r1cs_file, oracle, k, private_inputs=declared, input_name=self.input_name)
