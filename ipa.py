"""Inner-product argument for Pedersen vector commitments.

Proves `<a, b> = v` for a committed `a` (`C = <a, G> + rho H`) and a public
`b`, by log2(n) reduce-and-fold rounds:

```text
L = <a_L, G_R> + <a_L, b_R> U        R = <a_R, G_L> + <a_R, b_L> U
a' = x a_L + x^-1 a_R    b' = x^-1 b_L + x b_R    G' = x^-1 G_L + x G_R
P' = x^2 L + P + x^-2 R
```

The verifier folds `G` and `b` in one pass with the s-vector and checks
`P_final = a G_final + (a b_final) U + rho H`. The blinding `rho` is sent in
the clear: openings are binding, not hiding.
"""

from field import Fr  # circuit scalar field
from polynomials import log2_pow2  # round count

class IPAVerifyError(Exception):  # Raised when an opening proof does not verify.
    pass

class IPAProof:  # Round messages plus the final folded scalar and the revealed blinding.
    def __init__(self, L, R, a, blind):  # Store per-round points and final scalars.
        self.L = list(L)
        self.R = list(R)
        self.a = a
        self.blind = blind

    def __eq__(self, other):
        return isinstance(other, IPAProof) and (self.L, self.R, self.a, self.blind) == (other.L, other.R, other.a, other.blind)

    def __repr__(self): return f"IPAProof(rounds={len(self.L)})"

def _inner(xs, ys):
    out = Fr.zero()
    for x, y in zip(xs, ys):
        out += x * y
    return out

def _bind_statement(ck, u_gen, transcript, commitment, value, n):  # Absorb the claim; return U = xi * u_gen.
    C = ck.curve
    transcript.append_point(b"ipa_comm", C, commitment)
    transcript.append_scalar(b"ipa_eval", value)
    transcript.append_u64(b"ipa_n", n)
    xi = transcript.challenge_scalar(Fr)
    if xi.is_zero():
        raise IPAVerifyError("degenerate statement challenge")
    return C.mul(u_gen, xi)

def prove(ck, u_gen, transcript, commitment, a, blind, b, value):  # Open `commitment` to <a, b> = value.
    C = ck.curve
    n = len(a)
    log2_pow2(n)
    if len(b) != n or n > len(ck):
        raise ValueError("ipa vectors must match and fit the commitment key")
    U = _bind_statement(ck, u_gen, transcript, commitment, value, n)
    a, b, G = list(a), list(b), list(ck.generators[:n])
    Ls, Rs = [], []
    while n > 1:
        h = n // 2
        aL, aR, bL, bR, GL, GR = a[:h], a[h:], b[:h], b[h:], G[:h], G[h:]
        L = C.msm(GR + [U], aL + [_inner(aL, bR)])
        R = C.msm(GL + [U], aR + [_inner(aR, bL)])
        transcript.append_point(b"ipa_L", C, L)
        transcript.append_point(b"ipa_R", C, R)
        x = transcript.challenge_scalar(Fr)
        if x.is_zero():
            raise IPAVerifyError("degenerate round challenge")
        xi = x.inv()
        a = [aL[i] * x + aR[i] * xi for i in range(h)]
        b = [bL[i] * xi + bR[i] * x for i in range(h)]
        G = [C.msm([GL[i], GR[i]], [xi, x]) for i in range(h)]
        Ls.append(L)
        Rs.append(R)
        n = h
    return IPAProof(Ls, Rs, a[0], Fr(int(blind)))

def verify(ck, u_gen, transcript, commitment, b, value, proof):  # Raise IPAVerifyError unless the opening holds.
    C = ck.curve
    n = len(b)
    k = log2_pow2(n)
    if n > len(ck):
        raise IPAVerifyError("opening longer than the commitment key")
    if len(proof.L) != k or len(proof.R) != k:
        raise IPAVerifyError("invalid proof length for vector size")
    U = _bind_statement(ck, u_gen, transcript, commitment, value, n)
    xs = []
    for L, R in zip(proof.L, proof.R):
        transcript.append_point(b"ipa_L", C, L)
        transcript.append_point(b"ipa_R", C, R)
        x = transcript.challenge_scalar(Fr)
        if x.is_zero():
            raise IPAVerifyError("degenerate round challenge")
        xs.append(x)

    # s_i = prod_j x_j^{+1 if bit j of i (msb first) else -1}
    s = [Fr.one()]
    for x in xs:
        xi = x.inv()
        s = [f for v in s for f in (v * xi, v * x)]
    b_final = _inner(s, b)
    g_final = C.msm(ck.generators[:n], s)

    lhs = C.add(commitment, C.mul(U, value))
    if k:
        lhs = C.add(lhs, C.msm(proof.L + proof.R, [x * x for x in xs] + [(x * x).inv() for x in xs]))
    rhs = C.msm([g_final, U, ck.blinding_generator], [proof.a, proof.a * b_final, proof.blind])
    if lhs != rhs:
        raise IPAVerifyError("inner-product opening does not verify")
