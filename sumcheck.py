from field import Fr  # circuit scalar field
from polynomials import UniPoly, bind_top  # round polynomials + table folding

class SumcheckVerifyError(Exception):  # Raised on sumcheck verification failure.
    pass

class SumcheckInstanceProof:  # Sumcheck proof consisting of per-round compressed univariates.
    def __init__(self, compressed_polys):  # Store a list of CompressedUniPoly.
        self.compressed_polys = list(compressed_polys)

    def __eq__(self, other):
        return isinstance(other, SumcheckInstanceProof) and self.compressed_polys == other.compressed_polys

    def __repr__(self): return f"SumcheckInstanceProof({len(self.compressed_polys)} rounds)"

    @classmethod
    def prove(cls, claim, num_rounds, degree, tables, comb, transcript):
        """Prove sum_{b in {0,1}^n} comb(t_0(b), ..., t_k(b)) = claim.

        `tables` are big-endian evaluation tables of equal length 2^num_rounds;
        round j binds the j-th most significant variable. `comb` must have
        total degree <= `degree` in the table values. Returns the proof, the
        challenges and the tables' final bound values.
        """
        tables = [list(t) for t in tables]
        if any(len(t) != 1 << num_rounds for t in tables):
            raise ValueError("table length must be 2^num_rounds")
        polys, r = [], []
        e = claim
        for _ in range(int(num_rounds)):
            half = len(tables[0]) // 2
            evals = []
            for X in range(degree + 1):
                s = Fr.zero()
                for i in range(half):
                    s += comb([t[i] + (t[i + half] - t[i]) * X for t in tables])
                evals.append(s)
            poly = UniPoly.from_evals(evals)
            if evals[0] + evals[1] != e:
                raise ValueError("sumcheck prover: round polynomial does not match the running claim")
            compressed = poly.compress()
            transcript.append_scalars(b"sumcheck_poly", compressed.coeffs_except_linear_term)
            r_i = transcript.challenge_scalar(Fr)
            polys.append(compressed)
            r.append(r_i)
            e = poly.evaluate(r_i)
            tables = [bind_top(t, r_i) for t in tables]
        return cls(polys), r, [t[0] for t in tables]

    def verify(self, claim, num_rounds, degree_bound, transcript):  # Returns (final claim, challenges).
        e = claim
        r = []
        num_rounds = int(num_rounds)
        degree_bound = int(degree_bound)
        if len(self.compressed_polys) != num_rounds:
            raise SumcheckVerifyError("invalid proof length for num_rounds")
        for poly in self.compressed_polys:
            if poly.degree() == 0:
                raise SumcheckVerifyError("empty round polynomial")
            if poly.degree() > degree_bound:
                raise SumcheckVerifyError("degree bound exceeded")
            transcript.append_scalars(b"sumcheck_poly", poly.coeffs_except_linear_term)
            r_i = transcript.challenge_scalar(Fr)
            r.append(r_i)
            e = poly.eval_from_hint(e, r_i)
        return e, r
