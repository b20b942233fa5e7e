from ed_ring.modeling import PrimitiveBasis, primitive_count
from ed_ring.tools import (
    check_rates,
    check_time_window,
    check_precision,
    check_option_compatibility,
    InputValidationError,
    ResourceExhaustedError,
)


def _rejects(error, func, *args):
    try:
        func(*args)
    except error:
        return True
    return False


def test_ring_size():
    for p in [2, 4, 9, 33]:
        if not _rejects(InputValidationError, PrimitiveBasis, p, 1):
            raise ValueError(f"input test: FAIL, {p} sites accepted")
    if not _rejects(TypeError, PrimitiveBasis, 5.0, 2):
        raise ValueError("input test: FAIL, float number of sites accepted")


def test_particle_number():
    for p, k in [(5, 0), (5, 5), (7, -1), (7, 8)]:
        if not _rejects(InputValidationError, PrimitiveBasis, p, k):
            raise ValueError(f"input test: FAIL, {k} particles accepted on {p} sites")
    # A single particle or a single hole is a valid, if trivial, ring
    for p, k in [(5, 1), (5, 4), (31, 1)]:
        if len(PrimitiveBasis(p, k)) != 1:
            raise ValueError(f"input test: FAIL on the basis of {k} particles on {p} sites")


def test_basis_ceiling():
    if primitive_count(29, 14) <= 8192:
        raise ValueError("input test: FAIL, 14 particles on 29 sites should be large")
    if not _rejects(ResourceExhaustedError, PrimitiveBasis, 29, 14):
        raise ValueError("input test: FAIL, basis ceiling not enforced")
    if not _rejects(ResourceExhaustedError, PrimitiveBasis, 11, 5, 10):
        raise ValueError("input test: FAIL, custom basis ceiling not enforced")


def test_parameter_checks():
    if list(check_rates({"B": 2})) != [1.0, 2.0, 1.0, 1.0]:
        raise ValueError("input test: FAIL on the default rates")
    if not _rejects(InputValidationError, check_rates, {"C": 0.0}):
        raise ValueError("input test: FAIL, vanishing rate accepted")
    if not _rejects(TypeError, check_rates, {"E": 1.0}):
        raise ValueError("input test: FAIL, unknown rate accepted")
    for window in [(1.0, 1.0), (2.0, 1.0), (-1.0, 1.0)]:
        if not _rejects(InputValidationError, check_time_window, *window):
            raise ValueError(f"input test: FAIL, time window {window} accepted")
    if not _rejects(InputValidationError, check_time_window, 0.0, 1.0, True):
        raise ValueError("input test: FAIL, logarithmic scale from t=0 accepted")
    check_time_window(0.0, 1.0)
    check_time_window(0.1, 1.0, True)
    for precision in [1, 17]:
        if not _rejects(InputValidationError, check_precision, precision):
            raise ValueError(f"input test: FAIL, precision {precision} accepted")


def test_option_compatibility():
    clashes = [
        {"eigenvalues_only": True, "show_eigenvectors": True},
        {"eigenvalues_only": True, "check_accuracy": True},
        {"eigenvalues_only": True, "show_weight": True},
        {"eigenvalues_only": True, "show_q_contribution": True},
        {"eigenvalues_only": True, "symmetrize_eigenvectors": True},
        {"eigenvalues_only": True, "save": "blocks"},
        {"eigenvalues_only": True, "load": "blocks"},
        {"single_q": 0, "save": "blocks"},
        {"single_q": 2, "load": "blocks"},
    ]
    for options in clashes:
        if not _rejects(InputValidationError, check_option_compatibility, options):
            raise ValueError(f"input test: FAIL, options {options} accepted")
    allowed = [
        {"eigenvalues_only": True, "single_q": 1, "evolution": True},
        {"single_q": 0, "show_eigenvectors": True, "check_accuracy": True},
        {"save": "blocks", "show_weight": True},
        {"single_q": None, "load": "blocks"},
    ]
    for options in allowed:
        check_option_compatibility(options)


def main():
    test_ring_size()
    test_particle_number()
    test_basis_ceiling()
    test_parameter_checks()
    test_option_compatibility()
    print("Ring input test: PASS")


if __name__ == "__main__":
    main()
