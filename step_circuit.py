"""Augmented step circuit.

Wraps an inner Circom step circuit `F` so that every step instance carries the
public IO the folding driver needs:

```text
x = [i, h_i, z_i[0..k], z_{i+1}[0..k]]
W = [inner private wires..., step_wire, acc_wire]
```

`h_i` is the running accumulator's public representation before step `i`
(see `nova.RelaxedInstance.digest`). The copy constraints `step_wire * 1 = i`
and `acc_wire * 1 = h_i` bind both values into the committed witness, so an
instance folded with the wrong index or accumulator digest does not satisfy the
relation. The inner constraints are re-indexed so the inner outputs land on
`z_{i+1}` and the inner public inputs on `z_i`.
"""

from dataclasses import dataclass  # instance container

from errors import ArithmetizationError  # unsatisfied step
from field import Fr  # circuit field
from r1cs import LC, R1CS, R1CSConstraint  # augmented shape

@dataclass(frozen=True)
class AugmentedR1CSInstance:  # Public side of one augmented step.
    step_index: int
    acc_digest: Fr
    z_in: tuple
    z_out: tuple

    @property
    def x(self):  # Public IO vector in wire order.
        return public_io(self.step_index, self.acc_digest, self.z_in, self.z_out)

def public_io(step_index, acc_digest, z_in, z_out):  # x = [i, h_i, z_i..., z_{i+1}...].
    return (Fr(step_index), Fr(int(acc_digest)), *(Fr(int(v)) for v in z_in), *(Fr(int(v)) for v in z_out))

class AugmentedStepCircuit:  # Inner circuit plus index/accumulator copy wires.
    def __init__(self, circuit):  # Compile the inner circuit and build the augmented shape.
        self.circuit = circuit
        inner = circuit.compile()
        k = self.state_len = circuit.state_len
        self.num_io = 2 + 2 * k
        n_inner_private = inner.num_wires - 1 - 2 * k
        base = 1 + self.num_io

        def remap(w):
            if w == 0:
                return 0
            if w <= k:
                return 3 + k + (w - 1)  # inner output j -> z_{i+1}[j]
            if w <= 2 * k:
                return 3 + (w - 1 - k)  # inner input j -> z_i[j]
            return base + (w - 1 - 2 * k)

        self.step_wire = base + n_inner_private
        self.acc_wire = self.step_wire + 1
        constraints = [R1CSConstraint(c.a.remap(remap), c.b.remap(remap), c.c.remap(remap)) for c in inner.constraints]
        constraints.append(R1CSConstraint(LC([(self.step_wire, 1)]), LC(const=1), LC([(1, 1)])))
        constraints.append(R1CSConstraint(LC([(self.acc_wire, 1)]), LC(const=1), LC([(2, 1)])))
        self.r1cs = R1CS(constraints, self.acc_wire + 1, self.num_io)

    @property
    def num_witness(self): return self.r1cs.num_witness  # |W|

    @property
    def num_constraints(self): return self.r1cs.num_constraints  # |E|

    def arithmetize(self, step_index, z_i, z_i_plus_1, running_instance_public_repr, private_aux=None, *, rng=None):
        """Instance and private witness `W` for step `step_index`.

        `z_i_plus_1=None` takes the next state from the inner witness; a given
        value must agree with it. Witness-generation failures surface as
        `ArithmetizationError` subclasses from the circuit adapter.
        """
        if int(step_index) < 0:
            raise ValueError("step_index must be non-negative")
        k = self.state_len
        inner_w = self.circuit.generate_witness(z_i, private_aux, rng=rng)
        z_out = tuple(inner_w[1 : 1 + k])
        if z_i_plus_1 is not None:
            claimed = tuple(Fr(int(v)) for v in z_i_plus_1)
            if claimed != z_out:
                raise ArithmetizationError(f"claimed z_{{i+1}} does not match the step circuit output at step {step_index}")
        inst = AugmentedR1CSInstance(int(step_index), Fr(int(running_instance_public_repr)), tuple(inner_w[1 + k : 1 + 2 * k]), z_out)
        W = list(inner_w[1 + 2 * k :]) + [Fr(int(step_index)), inst.acc_digest]
        bad = self.r1cs.unsatisfied_rows([Fr.one(), *inst.x, *W])
        if bad:
            raise ArithmetizationError(f"step {step_index} does not satisfy the augmented relation (rows {bad[:8]})")
        return inst, W
