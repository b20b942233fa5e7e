from itertools import combinations
import numpy as np
from scipy.linalg import expm
from ed_ring.modeling import PrimitiveBasis, build_rate_tables, equilibrium_weights
from ed_ring.tools import check_rates, InputValidationError, ResourceExhaustedError
from ed_ring.dynamics import (
    compute_spectrum,
    Evolver,
    time_grid,
    one_site_patterns,
    two_site_patterns,
    equilibrium_average,
)


def _evolver(initial_state, rates, q_values=None):
    basis = PrimitiveBasis(len(initial_state), initial_state.count("o"))
    tables = build_rate_tables(basis)
    rates = check_rates(rates)
    weights = equilibrium_weights(basis, rates)
    spectrum = compute_spectrum(basis, tables, weights, rates, q_values=q_values)
    return Evolver(spectrum, basis, weights, initial_state)


def test_time_grid():
    times = time_grid(0.0, 10.0, 4)
    if not np.allclose(times, [0.0, 2.5, 5.0, 7.5, 10.0]):
        raise ValueError("evolution test: FAIL on the linear time grid")
    times = time_grid(0.01, 100.0, 4, log_scale=True)
    if not np.allclose(times, [0.01, 0.1, 1.0, 10.0, 100.0]):
        raise ValueError("evolution test: FAIL on the logarithmic time grid")
    try:
        time_grid(0.0, 1.0, 0)
    except InputValidationError:
        pass
    else:
        raise ValueError("evolution test: FAIL, empty time grid accepted")


def test_averaging_patterns():
    if one_site_patterns(5) != ["oxxxx", "xoxxx", "xxoxx", "xxxox", "xxxxo"]:
        raise ValueError("evolution test: FAIL on the one-site patterns")
    pairs = two_site_patterns(5)
    if len(pairs) != 10 or pairs[0] != "ooxxx" or pairs[-1] != "xxxoo" or len(set(pairs)) != 10:
        raise ValueError("evolution test: FAIL on the two-site patterns")


def test_initial_configuration():
    evolver = _evolver("oo...", {})
    averages = evolver.evolve(np.array([0.0]), one_site_patterns(5))
    if not np.allclose(averages[0], [1, 1, 0, 0, 0], atol=1e-10):
        raise ValueError("evolution test: FAIL on the one-site averages at t=0")
    grid = evolver.probability_grid(0.0)
    if abs(grid[evolver.shift, evolver.state] - 1) > 1e-10 or abs(np.sum(grid) - 1) > 1e-10:
        raise ValueError("evolution test: FAIL on the initial probabilities")
    pairs = evolver.evolve(np.array([0.0]), ["oo...", "o.o..", "ooxxx"])
    if not np.allclose(pairs[0], [1, 0, 1], atol=1e-10):
        raise ValueError("evolution test: FAIL on the pattern averages at t=0")


def test_relaxation():
    evolver = _evolver("oo...", {})
    patterns = one_site_patterns(5)
    late = np.array([200.0])
    if np.max(np.abs(evolver.evolve(late, patterns, deviation=True))) > 1e-6:
        raise ValueError("evolution test: FAIL, deviations survive at large times")
    equilibrium = [evolver.equilibrium_average(text) for text in patterns]
    if not np.allclose(equilibrium, 0.4, atol=1e-14):
        raise ValueError("evolution test: FAIL on the equilibrium density")
    if not np.allclose(evolver.evolve(late, patterns)[0], equilibrium, atol=1e-6):
        raise ValueError("evolution test: FAIL on the relaxation to equilibrium")


def test_conservation():
    rates = {"A": 1.3, "B": 0.4, "C": 2.2, "D": 0.8}
    evolver = _evolver("ooo.o......", rates)
    times = time_grid(0.0, 3.0, 6)
    averages = evolver.evolve(times, one_site_patterns(11))
    if np.max(np.abs(np.sum(averages, axis=1) - 4)) > 1e-9:
        raise ValueError("evolution test: FAIL, particle number not conserved")
    for time in times:
        grid = evolver.probability_grid(time)
        if abs(np.sum(grid) - 1) > 1e-10 or np.min(grid) < -1e-10:
            raise ValueError(f"evolution test: FAIL on the probabilities at t={time}")
    basis, weights = evolver.basis, evolver.weights
    deviations = evolver.evolve(np.array([50.0]), ["oo.xxxxxxxx"], deviation=True)
    late = evolver.evolve(np.array([50.0]), ["oo.xxxxxxxx"])
    stationary = equilibrium_average(basis, weights, "oo.xxxxxxxx")
    if abs(late[0, 0] - stationary - deviations[0, 0]) > 1e-12:
        raise ValueError("evolution test: FAIL, deviations do not match the averages")


def _master_generator(p, k, rates):
    # Every configuration of k particles, with its own hopping rules
    codes = [sum(1 << site for site in sites) for sites in combinations(range(p), k)]
    index = {code: ii for ii, code in enumerate(codes)}
    generator = np.zeros((len(codes), len(codes)))
    for code in codes:
        for site in range(p):
            if not (code >> site) & 1:
                continue
            for step in (1, -1):
                target = (site + step) % p
                if (code >> target) & 1:
                    continue
                new_code = code ^ (1 << site) ^ (1 << target)
                behind = (new_code >> ((site - step) % p)) & 1
                ahead = (new_code >> ((target + step) % p)) & 1
                rate = rates[behind + 2 * ahead]
                generator[index[new_code], index[code]] += rate
                generator[index[code], index[code]] -= rate
    return codes, generator


def _pattern_average(codes, probabilities, pattern):
    total = 0.0
    for code, probability in zip(codes, probabilities):
        if all(
            symbol == "x" or ((code >> site) & 1) == (symbol == "o")
            for site, symbol in enumerate(pattern)
        ):
            total += probability
    return total


def test_master_equation_reference():
    rates = {"A": 1.3, "B": 0.4, "C": 2.2, "D": 0.8}
    for initial_state in ["oo.o...", "ooo.o......"]:
        p, k = len(initial_state), initial_state.count("o")
        evolver = _evolver(initial_state, rates)
        codes, generator = _master_generator(p, k, check_rates(rates))
        initial_code = sum(1 << site for site, symbol in enumerate(initial_state) if symbol == "o")
        start = np.zeros(len(codes))
        start[codes.index(initial_code)] = 1.0
        patterns = one_site_patterns(p) + two_site_patterns(p)
        times = np.array([0.1, 1.0])
        averages = evolver.evolve(times, patterns)
        deviations = evolver.evolve(times, patterns, deviation=True)
        for it, time in enumerate(times):
            probabilities = expm(generator * time) @ start
            reference = [_pattern_average(codes, probabilities, text) for text in patterns]
            if not np.allclose(averages[it], reference, rtol=0, atol=1e-8):
                raise ValueError(
                    f"evolution test: FAIL against the master equation for {initial_state} at t={time}"
                )
            equilibrium = [evolver.equilibrium_average(text) for text in patterns]
            if not np.allclose(deviations[it], np.subtract(reference, equilibrium), rtol=0, atol=1e-8):
                raise ValueError(
                    f"evolution test: FAIL on the deviations for {initial_state} at t={time}"
                )


def test_incomplete_inputs():
    try:
        _evolver("oo...", {}, q_values=[1])
    except InputValidationError:
        pass
    else:
        raise ValueError("evolution test: FAIL, evolution from a single sector accepted")
    evolver = _evolver("oo...", {})
    try:
        evolver.evolve(np.array([0.0]), ["xxxxx"] * 513)
    except ResourceExhaustedError:
        pass
    else:
        raise ValueError("evolution test: FAIL, too many averaging patterns accepted")


def main():
    test_time_grid()
    test_averaging_patterns()
    test_initial_configuration()
    test_relaxation()
    test_conservation()
    test_master_equation_reference()
    test_incomplete_inputs()
    print("Ring evolution test: PASS")


if __name__ == "__main__":
    main()
