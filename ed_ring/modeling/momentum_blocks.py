"""Generator of the ring dynamics restricted to one cyclic-momentum sector.

Since the ring length is prime, every rotation class carries one momentum
state per ``q = 0, ..., p-1``. The generator is block diagonal in ``q`` and
the block ``q`` acts on the primitive patterns. A hop reducing to primitive
``j`` with rotation shift ``m`` contributes the phase ``omega^(-m q)``,
``omega = exp(2 pi i / p)``. Sector ``p - q`` is the complex conjugate of
sector ``q``, so only ``q = 0, ..., (p-1)/2`` are built.

The rate matrix is not symmetric, but it obeys detailed balance with respect
to the equilibrium weights ``pi``. The similarity transform
``S = pi^(-1/2) M pi^(1/2)`` makes the block real symmetric (``q = 0``) or
Hermitian (``q != 0``) without changing its spectrum.
"""

import numpy as np
import logging
from ed_ring.tools import (
    InputValidationError,
    validate_parameters,
    check_hermitian,
    check_rates,
)

logger = logging.getLogger(__name__)

__all__ = [
    "n_momentum_sectors",
    "momentum_values",
    "check_momentum",
    "unsymmetrized_block",
    "symmetrize_block",
    "build_momentum_block",
    "check_stationary_state",
    "check_mirror_symmetry",
]


def n_momentum_sectors(p):
    return (p + 1) // 2


def momentum_values(p):
    """Independent momentum sectors ``0, ..., (p-1)/2``."""
    return list(range(n_momentum_sectors(p)))


def check_momentum(q, p):
    validate_parameters(q=q, p=p)
    if q < 0 or q > (p - 1) // 2:
        msg = f"momentum q={q} outside the independent sectors 0...{(p - 1) // 2}"
        raise InputValidationError(msg)


def unsymmetrized_block(q, tables, rates):
    """
    Rate matrix of sector ``q`` in the primitive basis.

    Args:
        q (int): momentum index.

        tables (RateTables): transition counts.

        rates (numpy.ndarray): ``[RateA, RateB, RateC, RateD]``.

    Returns:
        numpy.ndarray: ``M[dest, src]``, real for ``q = 0`` and complex otherwise.
        The diagonal holds minus the total outflow rate.
    """
    p = tables.basis.p
    check_momentum(q, p)
    forward, backward, outflow = tables.weighted(rates)
    if q == 0:
        block = forward + backward
    else:
        phase = np.exp(-2j * np.pi * ((tables.forward_shift * q) % p) / p)
        block = phase * forward + np.conj(phase) * backward
    block[np.diag_indices_from(block)] -= outflow
    return block


def symmetrize_block(block, weights):
    """
    Detailed-balance similarity transform of a rate matrix.

    The upper triangle is rescaled by ``sqrt(pi_j / pi_i)`` and mirrored
    (conjugated if complex) into the lower triangle.

    Args:
        block (numpy.ndarray): rate matrix ``M[dest, src]``.

        weights (numpy.ndarray): equilibrium weights.

    Returns:
        numpy.ndarray: symmetric or Hermitian matrix with the spectrum of ``block``.
    """
    validate_parameters(array=block)
    validate_parameters(array=weights)
    sqrt_w = np.sqrt(weights)
    scaled = block * (sqrt_w[None, :] / sqrt_w[:, None])
    upper = np.triu(scaled, 1)
    lower = upper.T.conj() if np.iscomplexobj(scaled) else upper.T
    return upper + lower + np.diag(np.diag(scaled))


def build_momentum_block(q, tables, weights, rates):
    """
    Symmetrized generator of momentum sector ``q``.

    Args:
        q (int): momentum index in ``0, ..., (p-1)/2``.

        tables (RateTables): transition counts.

        weights (numpy.ndarray): equilibrium weights of the primitives.

        rates (dict or numpy.ndarray): jump rates.

    Raises:
        InputValidationError: If ``q`` is not an independent sector.

    Returns:
        numpy.ndarray: real symmetric (``q = 0``) or complex Hermitian matrix.
    """
    if isinstance(rates, dict):
        rates = check_rates(rates)
    logger.info(f"Creating submatrix for momentum q = {q}")
    return symmetrize_block(unsymmetrized_block(q, tables, rates), weights)


def check_stationary_state(block, weights, threshold=1e-10):
    """
    Check that ``sqrt(pi)`` is annihilated by the ``q = 0`` block.

    The residual is measured relative to the largest entry of the block.

    Raises:
        ValueError: If the residual norm exceeds ``threshold``.
    """
    validate_parameters(array=block, threshold=threshold)
    sqrt_w = np.sqrt(weights)
    residual = np.linalg.norm(block @ sqrt_w) / np.linalg.norm(sqrt_w)
    if residual > threshold * max(1.0, np.max(np.abs(block))):
        raise ValueError(f"equilibrium state is not stationary: residual {residual}")
    logger.debug("STATIONARY STATE VALIDATED")


def check_mirror_symmetry(block, mirror, threshold=1e-12):
    """
    Check ``block[mirror i, mirror j] == conj(block[i, j])`` and the Hermiticity.

    Raises:
        ValueError: If either property fails.
    """
    check_hermitian(block, threshold)
    reflected = block[np.ix_(mirror, mirror)]
    if np.max(np.abs(reflected - np.conj(block)), initial=0.0) > threshold * max(
        1.0, np.max(np.abs(block))
    ):
        raise ValueError("momentum block is not mirror symmetric")
    logger.debug("MIRROR SYMMETRY VALIDATED")
