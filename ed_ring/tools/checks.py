"""
This module provides type validation, timing, and consistency checks used across the library.
"""

import numpy as np
from functools import wraps
from time import perf_counter
import logging
from .errors import InputValidationError

logger = logging.getLogger(__name__)

__all__ = [
    "get_time",
    "validate_parameters",
    "is_prime",
    "check_ring_size",
    "check_particle_number",
    "check_rates",
    "check_time_window",
    "check_precision",
    "check_matrix",
    "check_hermitian",
    "TRANSFORM_FEATURES",
    "SINGLE_Q_INCOMPATIBLE",
    "check_option_compatibility",
    "RATE_LABELS",
    "MIN_SITES",
    "MAX_SITES",
    "MIN_PRECISION",
    "MAX_PRECISION",
]

RATE_LABELS = ("A", "B", "C", "D")
MIN_SITES = 3
MAX_SITES = 31
MIN_PRECISION = 2
MAX_PRECISION = 16

# Features that read the eigenvector transform of each momentum block
TRANSFORM_FEATURES = {
    "check_accuracy": "accuracy check of the diagonalization",
    "show_eigenvectors": "eigenvector listing",
    "show_q_contribution": "contribution to the momentum averages <q>",
    "show_weight": "eigenvector weight in the initial configuration",
    "symmetrize_eigenvectors": "mirror symmetrization of the eigenvectors",
    "load": "loading block data",
    "save": "saving block data",
}
# Features that need every momentum block at once
SINGLE_Q_INCOMPATIBLE = {
    "load": "loading block data",
    "save": "saving block data",
}


def get_time(func):
    """Times any function"""

    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = perf_counter()
        result = func(*args, **kwargs)
        end_time = perf_counter()
        tot_time = end_time - start_time
        logger.info(f"TIME {func.__name__} {round(tot_time, 5)}")
        return result

    return wrapper


def validate_parameters(
    p=None,
    k=None,
    q=None,
    pattern=None,
    patterns=None,
    rates=None,
    steps=None,
    precision=None,
    log_scale=None,
    deviation=None,
    accumulate=None,
    dictionary=None,
    filename=None,
    array=None,
    threshold=None,
):
    """
    This is a function for type validation of parameters widely used in the library
    """
    # -----------------------------------------------------------------------------
    if p is not None and (isinstance(p, bool) or not isinstance(p, (int, np.integer))):
        raise TypeError(f"p should be an INT, not {type(p)}")
    if k is not None and (isinstance(k, bool) or not isinstance(k, (int, np.integer))):
        raise TypeError(f"k should be an INT, not {type(k)}")
    if q is not None and (isinstance(q, bool) or not isinstance(q, (int, np.integer))):
        raise TypeError(f"q should be an INT, not {type(q)}")
    # -----------------------------------------------------------------------------
    if pattern is not None and not isinstance(pattern, str):
        raise TypeError(f"pattern should be a STRING, not {type(pattern)}")
    if patterns is not None and (
        not isinstance(patterns, list) or not all(isinstance(x, str) for x in patterns)
    ):
        raise TypeError(f"patterns should be a LIST of STRINGs, not {type(patterns)}")
    if rates is not None:
        if not isinstance(rates, dict):
            raise TypeError(f"rates should be a DICT, not {type(rates)}")
        for label, value in rates.items():
            if label not in RATE_LABELS:
                raise TypeError(f"rates keys must be in {RATE_LABELS}, not {label}")
            if isinstance(value, bool) or not isinstance(
                value, (int, float, np.integer, np.floating)
            ):
                raise TypeError(f"rate {label} should be a FLOAT, not {type(value)}")
    # -----------------------------------------------------------------------------
    if steps is not None and (
        isinstance(steps, bool) or not isinstance(steps, (int, np.integer))
    ):
        raise TypeError(f"steps should be an INT, not {type(steps)}")
    if precision is not None and (
        isinstance(precision, bool) or not isinstance(precision, (int, np.integer))
    ):
        raise TypeError(f"precision should be an INT, not {type(precision)}")
    if log_scale is not None and not isinstance(log_scale, bool):
        raise TypeError(f"log_scale should be a BOOL, not {type(log_scale)}")
    if deviation is not None and not isinstance(deviation, bool):
        raise TypeError(f"deviation should be a BOOL, not {type(deviation)}")
    if accumulate is not None and not isinstance(accumulate, bool):
        raise TypeError(f"accumulate should be a BOOL, not {type(accumulate)}")
    # -----------------------------------------------------------------------------
    if dictionary is not None and not isinstance(dictionary, dict):
        raise TypeError(f"dictionary should be a DICT, not {type(dictionary)}")
    if filename is not None and not isinstance(filename, str):
        raise TypeError(f"filename should be a STRING, not {type(filename)}")
    if array is not None and not isinstance(array, np.ndarray):
        raise TypeError(f"array must be np.array, not {type(array)}")
    if threshold is not None and not isinstance(threshold, float):
        raise TypeError(f"threshold should be a SCALAR FLOAT, not {type(threshold)}")
    # -----------------------------------------------------------------------------


def is_prime(n):
    """Return True if the integer ``n`` is a prime number."""
    if n < 2:
        return False
    divisor = 2
    while divisor * divisor <= n:
        if n % divisor == 0:
            return False
        divisor += 1
    return True


def check_ring_size(p):
    """
    Check that the ring has a prime number of sites in [3, 31].

    Args:
        p (int): number of ring sites.

    Raises:
        InputValidationError: If the size is out of range or not prime.
    """
    validate_parameters(p=p)
    if p < MIN_SITES:
        raise InputValidationError(f"At least {MIN_SITES} sites required, not {p}")
    if p > MAX_SITES:
        raise InputValidationError(f"At most {MAX_SITES} sites permitted, not {p}")
    if not is_prime(p):
        raise InputValidationError(f"Number of sites must be prime, not {p}")


def check_particle_number(p, k):
    """
    Check that the ring carries at least one particle and at least one hole.

    Args:
        p (int): number of ring sites.

        k (int): number of particles.

    Raises:
        InputValidationError: If k == 0 or k == p.
    """
    validate_parameters(p=p, k=k)
    if k <= 0 or k >= p:
        raise InputValidationError(
            f"No particles (holes) present: k={k} must satisfy 0 < k < {p}"
        )


def check_rates(rates):
    """
    Validate and complete a dictionary of jump rates.

    Args:
        rates (dict): keys among "A", "B", "C", "D"; missing keys default to 1.

    Returns:
        numpy.ndarray: float64 array ``[RateA, RateB, RateC, RateD]``.

    Raises:
        InputValidationError: If any rate is not strictly positive.
    """
    validate_parameters(rates=rates)
    values = np.ones(len(RATE_LABELS), dtype=np.float64)
    for ii, label in enumerate(RATE_LABELS):
        value = float(rates.get(label, 1.0))
        if not value > 0:
            raise InputValidationError(f"Rate {label} must be positive, not {value}")
        values[ii] = value
    return values


def check_time_window(start, stop, log_scale=False):
    """
    Check the time window of the evolution.

    Raises:
        InputValidationError: If the window is empty, starts before 0, or uses
        a logarithmic scale starting at 0.
    """
    validate_parameters(log_scale=log_scale)
    if start >= stop:
        raise InputValidationError(
            f"Start must occur before stop in evolution: {start} >= {stop}"
        )
    if start < 0:
        raise InputValidationError(f"Negative start time {start}")
    if log_scale and start == 0:
        raise InputValidationError("Logarithmic scale requires positive start time")


def check_precision(precision):
    """
    Check the number of digits of the printed results.

    Raises:
        InputValidationError: If ``precision`` is outside [2, 16].
    """
    validate_parameters(precision=precision)
    if precision < MIN_PRECISION or precision > MAX_PRECISION:
        msg = f"precision must be in [{MIN_PRECISION}, {MAX_PRECISION}], not {precision}"
        raise InputValidationError(msg)


def check_option_compatibility(options):
    """
    Check that the requested options can be served together.

    The incompatibilities are derived from :data:`TRANSFORM_FEATURES` (options
    reading the eigenvector transform, forbidden with ``eigenvalues_only``) and
    :data:`SINGLE_Q_INCOMPATIBLE` (options needing every momentum block,
    forbidden with ``single_q``).

    Args:
        options (dict): flat dictionary of option names; a feature is active
            when its value is truthy. ``single_q`` is active when not None.

    Raises:
        InputValidationError: If two options are incompatible.
    """
    validate_parameters(dictionary=options)
    if options.get("eigenvalues_only", False):
        clash = [name for name in TRANSFORM_FEATURES if options.get(name)]
        if clash:
            needs = ", ".join(TRANSFORM_FEATURES[name] for name in clash)
            msg = f"eigenvalues_only is incompatible with {clash} (needs: {needs})"
            raise InputValidationError(msg)
    if options.get("single_q", None) is not None:
        clash = [name for name in SINGLE_Q_INCOMPATIBLE if options.get(name)]
        if clash:
            msg = f"single_q is incompatible with {clash}"
            raise InputValidationError(msg)


def check_matrix(A, B, threshold=1e-12):
    """
    Check the difference between two dense matrices A and B computing the Frobenius Norm

    Args:
        A (numpy.ndarray): First matrix

        B (numpy.ndarray): Second matrix

        threshold (float): maximum relative difference.

    Raises:
        ValueError: If the matrices have different shapes or the difference ratio is above a threshold.
    """
    validate_parameters(array=A)
    validate_parameters(array=B, threshold=threshold)
    if A.shape != B.shape:
        raise ValueError(f"Shape mismatch between : A {A.shape} & B: {B.shape}")
    norma = np.linalg.norm(A - B)
    norma_max = max(np.linalg.norm(A + B), np.linalg.norm(A), np.linalg.norm(B), 1.0)
    ratio = norma / norma_max
    if ratio > threshold:
        logger.debug("    ERROR: A and B are DIFFERENT MATRICES")
        raise ValueError(f"    NORM {norma}, RATIO {ratio}")


def check_hermitian(A, threshold=1e-12):
    """
    Check if a dense matrix A is Hermitian (symmetric if real).

    Args:
        A (numpy.ndarray): The matrix to check for Hermiticity.

    Raises:
        ValueError: If A differs from its conjugate transpose.
    """
    validate_parameters(array=A)
    check_matrix(A, A.conj().T, threshold)
    logger.debug("HERMITICITY VALIDATED")
