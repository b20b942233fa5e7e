import numpy as np
from ed_ring.modeling import (
    PrimitiveBasis,
    build_rate_tables,
    check_rate_symmetry,
    collapsing_numbers,
    equilibrium_weights,
    build_momentum_block,
    unsymmetrized_block,
    check_stationary_state,
    check_mirror_symmetry,
    increment_jump,
    decrement_jump,
)
from ed_ring.tools import check_rates, InputValidationError


def test_jump_types():
    # ".o.oo..": site 1 jumps to 2, joining the pair ahead
    code = np.int64(0b0011010)
    new_code, jump = increment_jump(code, 1, 7)
    if new_code != 0b0011100 or jump != 2:
        raise ValueError("rate test: FAIL on the increment of type C")
    # site 3 is blocked by site 4
    if increment_jump(code, 2, 7)[1] != -1:
        raise ValueError("rate test: FAIL on a blocked increment")
    # site 4 jumps to 5, leaving site 3 behind
    if increment_jump(code, 3, 7)[1] != 1:
        raise ValueError("rate test: FAIL on the increment of type B")
    # site 1 jumps back to 0, free jump
    if decrement_jump(code, 1, 7)[1] != 0:
        raise ValueError("rate test: FAIL on the decrement of type A")
    # "o.o...o": site 0 jumps to 1, from one atom to the next
    if increment_jump(np.int64(0b1000101), 1, 7)[1] != 3:
        raise ValueError("rate test: FAIL on the increment of type D")


def test_rate_tables():
    for p, k in [(5, 2), (7, 3), (11, 5), (13, 4)]:
        basis = PrimitiveBasis(p, k)
        tables = build_rate_tables(basis)
        check_rate_symmetry(tables)
        if tables.forward_shift != pow(k, -1, p) or tables.backward_shift != p - pow(k, -1, p):
            raise ValueError(f"rate test: FAIL on the rotation shifts for p={p}, k={k}")
        outflow = tables.forward.sum(axis=0) + tables.backward.sum(axis=0)
        if np.any(outflow != tables.diagonal):
            raise ValueError(f"rate test: FAIL on the outflow counts for p={p}, k={k}")


def test_equilibrium_weights():
    basis = PrimitiveBasis(11, 4)
    for rates in [{}, {"A": 0.3, "B": 2.0, "C": 0.5, "D": 1.7}]:
        weights = equilibrium_weights(basis, rates)
        if np.any(weights <= 0) or abs(np.sum(weights) - 1 / basis.p) > 1e-14:
            raise ValueError(f"rate test: FAIL on the weight normalization for {rates}")
    weights = equilibrium_weights(basis, {"B": 2.0, "C": 1.0})
    c_nums = collapsing_numbers(basis.codes, basis.p, basis.k)
    ratios = weights / weights[0]
    if not np.allclose(ratios, 2.0 ** (c_nums - c_nums[0]), atol=0, rtol=1e-12):
        raise ValueError("rate test: FAIL on the collapsing-number weights")


def test_momentum_blocks():
    basis = PrimitiveBasis(11, 4)
    tables = build_rate_tables(basis)
    rates = check_rates({"A": 0.3, "B": 2.0, "C": 0.5, "D": 1.7})
    weights = equilibrium_weights(basis, rates)
    # Probability conservation of the q=0 rate matrix
    if np.max(np.abs(unsymmetrized_block(0, tables, rates).sum(axis=0))) > 1e-12:
        raise ValueError("rate test: FAIL, q=0 columns do not sum to zero")
    check_stationary_state(build_momentum_block(0, tables, weights, rates), weights)
    for q in range(6):
        block = build_momentum_block(q, tables, weights, rates)
        if (q == 0) == np.iscomplexobj(block):
            raise ValueError(f"rate test: FAIL on the dtype of block q={q}")
        check_mirror_symmetry(block, basis.mirror)
    try:
        build_momentum_block(6, tables, weights, rates)
    except InputValidationError:
        pass
    else:
        raise ValueError("rate test: FAIL, momentum q=6 accepted on 11 sites")


def main():
    test_jump_types()
    test_rate_tables()
    test_equilibrium_weights()
    test_momentum_blocks()
    print("Ring rate test: PASS")


if __name__ == "__main__":
    main()
