"""Shifted QR iteration for real symmetric tridiagonal matrices.

Each sweep performs an explicit Wilkinson-shifted QR step, ``T - s = Q R``
followed by ``T <- R Q + s``, on the trailing unreduced block, with ``Q``
built from Givens rotations. A trailing off-diagonal entry that is negligible
against its diagonal neighbours deflates the block by one, and a trailing
``2 x 2`` block is closed by a single Jacobi rotation. The rotations are
also applied to the rows of an optional transform, so that ``Z A Z^H``
becomes diagonal when ``Z`` starts from the Householder transform.

The rotations are real; the transform can be real or complex.
"""

import numpy as np
from numba import njit
import logging
from ed_ring.tools import NumericalNonConvergenceError, validate_parameters

logger = logging.getLogger(__name__)

__all__ = [
    "MAX_QR_ITERATIONS",
    "jacobi_rotation",
    "qr_step",
    "qr_tridiagonal",
    "selection_order",
    "diagonalize_tridiagonal",
    "eigen_order",
]

MAX_QR_ITERATIONS = 30
EPSILON = np.finfo(np.float64).eps


@njit(cache=True)
def _rotate_rows(transform, row, cos, sin):
    # (Z_j, Z_j+1) <- (c Z_j + s Z_j+1, -s Z_j + c Z_j+1)
    for cc in range(transform.shape[1]):
        upper = transform[row, cc]
        lower = transform[row + 1, cc]
        transform[row, cc] = cos * upper + sin * lower
        transform[row + 1, cc] = -sin * upper + cos * lower


@njit(cache=True)
def jacobi_rotation(diagonal, offdiagonal, row, transform, accumulate):
    """Diagonalize the ``2 x 2`` block of rows ``row - 1`` and ``row`` in place."""
    b = offdiagonal[row]
    if b == 0.0:
        return
    theta = (diagonal[row - 1] - diagonal[row]) / (2.0 * b)
    sign = 1.0 if theta >= 0.0 else -1.0
    tangent = sign / (abs(theta) + np.sqrt(1.0 + theta * theta))
    cos = 1.0 / np.sqrt(1.0 + tangent * tangent)
    sin = tangent * cos
    diagonal[row - 1] += tangent * b
    diagonal[row] -= tangent * b
    offdiagonal[row] = 0.0
    if accumulate:
        _rotate_rows(transform, row - 1, cos, sin)


@njit(cache=True)
def qr_step(diagonal, offdiagonal, low, high, transform, accumulate):
    """One explicit Wilkinson-shifted QR step on the block ``[low, high]``.

    Parameters
    ----------
    diagonal, offdiagonal : numpy.ndarray
        Tridiagonal matrix, updated in place. ``offdiagonal[j]`` couples
        ``j - 1`` and ``j``.
    low, high : int
        Bounds of the unreduced block (``high - low >= 2``).
    transform : numpy.ndarray
        Rows rotated along with the matrix when ``accumulate`` is True.
    accumulate : bool
        Whether to update ``transform``.
    """
    # Eigenvalue of the trailing 2x2 block closer to its last entry
    half = 0.5 * (diagonal[high] - diagonal[high - 1])
    mean = 0.5 * (diagonal[high] + diagonal[high - 1])
    root = np.hypot(half, offdiagonal[high])
    shift = mean + root if half > 0.0 else mean - root
    size = high - low + 1
    cosines = np.ones(size, dtype=np.float64)
    sines = np.zeros(size, dtype=np.float64)
    r_diag = np.zeros(size, dtype=np.float64)
    r_sup = np.zeros(size, dtype=np.float64)
    for jj in range(low, high + 1):
        diagonal[jj] -= shift
    # QR factorization with Givens rotations
    x = diagonal[low]
    z = offdiagonal[low + 1]
    for jj in range(low, high):
        y = offdiagonal[jj + 1]
        r = np.hypot(x, y)
        cos = 1.0
        sin = 0.0
        if r > 0.0:
            cos = x / r
            sin = y / r
        pos = jj - low
        cosines[pos] = cos
        sines[pos] = sin
        r_diag[pos] = r
        r_sup[pos] = cos * z + sin * diagonal[jj + 1]
        x = -sin * z + cos * diagonal[jj + 1]
        if jj + 2 <= high:
            z = cos * offdiagonal[jj + 2]
    r_diag[size - 1] = x
    # RQ product
    previous_cos = 1.0
    for pos in range(size - 1):
        diagonal[low + pos] = (
            cosines[pos] * previous_cos * r_diag[pos] + sines[pos] * r_sup[pos] + shift
        )
        offdiagonal[low + pos + 1] = sines[pos] * r_diag[pos + 1]
        previous_cos = cosines[pos]
    diagonal[high] = previous_cos * r_diag[size - 1] + shift
    if accumulate:
        for pos in range(size - 1):
            _rotate_rows(transform, low + pos, cosines[pos], sines[pos])


@njit(cache=True)
def qr_tridiagonal(diagonal, offdiagonal, transform, accumulate, max_iter):
    """Diagonalize a symmetric tridiagonal matrix in place.

    Returns
    -------
    int
        -1 on success, otherwise the last row of the block that exceeded
        ``max_iter`` sweeps without deflating.
    """
    top = len(diagonal) - 1
    count = 0
    while top > 0:
        low = top
        while low > 0:
            scale = abs(diagonal[low - 1]) + abs(diagonal[low])
            if abs(offdiagonal[low]) <= EPSILON * scale:
                offdiagonal[low] = 0.0
                break
            low -= 1
        if low == top:
            top -= 1
            count = 0
        elif low == top - 1:
            jacobi_rotation(diagonal, offdiagonal, top, transform, accumulate)
            top -= 2
            count = 0
        else:
            count += 1
            if count > max_iter:
                return top
            qr_step(diagonal, offdiagonal, low, top, transform, accumulate)
    return -1


@njit(cache=True)
def selection_order(values):
    """Permutation sorting ``values`` ascending; ties keep the lower index first."""
    n = len(values)
    order = np.arange(n)
    for ii in range(n):
        best = ii
        for jj in range(ii + 1, n):
            if values[order[jj]] < values[order[best]]:
                best = jj
        tmp = order[ii]
        order[ii] = order[best]
        order[best] = tmp
    return order


def diagonalize_tridiagonal(diagonal, offdiagonal, transform=None, max_iter=MAX_QR_ITERATIONS):
    """
    Eigenvalues (and rotated transform) of a real symmetric tridiagonal matrix.

    Args:
        diagonal (numpy.ndarray): main diagonal.

        offdiagonal (numpy.ndarray): ``offdiagonal[i]`` couples ``i-1`` and ``i``.

        transform (numpy.ndarray, optional): rows to rotate along, typically the
            Householder transform. It is copied, not modified.

        max_iter (int, optional): sweeps allowed without deflation.

    Raises:
        NumericalNonConvergenceError: If a block fails to deflate within ``max_iter`` sweeps.

    Returns:
        tuple: ``(eigenvalues, transform)`` in the order produced by the
        iteration; ``transform`` is None if none was given.
    """
    validate_parameters(array=diagonal)
    validate_parameters(array=offdiagonal)
    diagonal = np.array(diagonal, dtype=np.float64)
    offdiagonal = np.array(offdiagonal, dtype=np.float64)
    if len(offdiagonal) != len(diagonal):
        raise ValueError("diagonal and offdiagonal must have the same length")
    if transform is None:
        rows = np.zeros((0, 0), dtype=np.float64)
        accumulate = False
    else:
        rows = np.array(transform, dtype=np.result_type(transform, np.float64))
        accumulate = True
    status = qr_tridiagonal(diagonal, offdiagonal, rows, accumulate, max_iter)
    if status >= 0:
        msg = f"QR iteration did not converge within {max_iter} sweeps (row {status})"
        raise NumericalNonConvergenceError(msg)
    return diagonal, rows if accumulate else None


def eigen_order(eigenvalues):
    """Ascending permutation of the eigenvalues (deterministic selection sort)."""
    validate_parameters(array=eigenvalues)
    return selection_order(np.ascontiguousarray(eigenvalues, dtype=np.float64))
