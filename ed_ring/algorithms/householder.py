"""Householder reduction of dense Hermitian matrices to real tridiagonal form.

The reduction proceeds from the last column to the first: the reflection
``H_i = 1 - u u^H / h`` annihilates all entries of column ``i`` above the
first superdiagonal. The product ``P = H_2 H_3 ... H_{n-1}`` satisfies
``P A P^H = T``. In the Hermitian case the phases left on the
superdiagonal are absorbed by a diagonal unitary, so that both variants hand
a *real* symmetric tridiagonal matrix to the QR stage.
"""

import numpy as np
from numba import njit
import logging
from ed_ring.tools import validate_parameters

logger = logging.getLogger(__name__)

__all__ = [
    "householder_real",
    "householder_complex",
    "TridiagonalForm",
    "tridiagonalize",
]


@njit(cache=True)
def householder_real(matrix, accumulate):
    """Tridiagonalize a real symmetric matrix.

    Parameters
    ----------
    matrix : numpy.ndarray
        Real symmetric ``(n, n)`` matrix. It is not modified.
    accumulate : bool
        If True, also build the orthogonal transform.

    Returns
    -------
    tuple
        ``(diagonal, offdiagonal, transform)``. ``offdiagonal[i]`` is the
        entry ``(i-1, i)`` and ``offdiagonal[0] = 0``. ``transform`` is
        ``(n, n)`` if accumulated and ``(0, 0)`` otherwise.
    """
    a = matrix.copy()
    n = a.shape[0]
    diagonal = np.zeros(n, dtype=np.float64)
    offdiagonal = np.zeros(n, dtype=np.float64)
    reflectors = np.zeros((n, n), dtype=np.float64)
    norms = np.zeros(n, dtype=np.float64)
    for ii in range(n - 1, 1, -1):
        sigma = 0.0
        for rr in range(ii):
            sigma += a[rr, ii] * a[rr, ii]
        sigma = np.sqrt(sigma)
        diagonal[ii] = a[ii, ii]
        if sigma == 0.0:
            # Degenerate row: already tridiagonal
            offdiagonal[ii] = 0.0
            continue
        pivot = a[ii - 1, ii]
        phase = 1.0 if pivot >= 0.0 else -1.0
        h = sigma * sigma + sigma * abs(pivot)
        u = np.empty(ii, dtype=np.float64)
        for rr in range(ii):
            u[rr] = a[rr, ii]
        u[ii - 1] += phase * sigma
        # p = B u / h, K = u.p / 2h, q = p - K u
        pvec = np.zeros(ii, dtype=np.float64)
        for rr in range(ii):
            acc = 0.0
            for cc in range(ii):
                acc += a[rr, cc] * u[cc]
            pvec[rr] = acc / h
        kappa = 0.0
        for rr in range(ii):
            kappa += u[rr] * pvec[rr]
        kappa /= 2.0 * h
        for rr in range(ii):
            pvec[rr] -= kappa * u[rr]
        # B <- B - q u^T - u q^T
        for rr in range(ii):
            for cc in range(ii):
                a[rr, cc] -= pvec[rr] * u[cc] + u[rr] * pvec[cc]
        offdiagonal[ii] = -phase * sigma
        for rr in range(ii):
            reflectors[ii, rr] = u[rr]
        norms[ii] = h
    diagonal[0] = a[0, 0]
    if n > 1:
        diagonal[1] = a[1, 1]
        offdiagonal[1] = a[0, 1]
    if not accumulate:
        return diagonal, offdiagonal, np.zeros((0, 0), dtype=np.float64)
    transform = np.eye(n, dtype=np.float64)
    for ii in range(2, n):
        h = norms[ii]
        if h == 0.0:
            continue
        # P <- P H_i, acting on the first ii columns
        for rr in range(n):
            acc = 0.0
            for cc in range(ii):
                acc += transform[rr, cc] * reflectors[ii, cc]
            acc /= h
            for cc in range(ii):
                transform[rr, cc] -= acc * reflectors[ii, cc]
    return diagonal, offdiagonal, transform


@njit(cache=True)
def householder_complex(matrix, accumulate):
    """Tridiagonalize a complex Hermitian matrix into a real tridiagonal one.

    Parameters
    ----------
    matrix : numpy.ndarray
        Complex Hermitian ``(n, n)`` matrix. It is not modified.
    accumulate : bool
        If True, also build the unitary transform.

    Returns
    -------
    tuple
        ``(diagonal, offdiagonal, transform)`` with real ``diagonal`` and
        non-negative ``offdiagonal`` (entry ``(i-1, i)``). The complex
        ``transform`` includes the phase absorption, so that
        ``transform @ matrix @ transform^H`` is the real tridiagonal matrix.
    """
    a = matrix.copy()
    n = a.shape[0]
    diagonal = np.zeros(n, dtype=np.float64)
    superdiag = np.zeros(n, dtype=np.complex128)
    reflectors = np.zeros((n, n), dtype=np.complex128)
    norms = np.zeros(n, dtype=np.float64)
    for ii in range(n - 1, 1, -1):
        sigma = 0.0
        for rr in range(ii):
            sigma += a[rr, ii].real ** 2 + a[rr, ii].imag ** 2
        sigma = np.sqrt(sigma)
        diagonal[ii] = a[ii, ii].real
        if sigma == 0.0:
            superdiag[ii] = 0.0 + 0.0j
            continue
        pivot = a[ii - 1, ii]
        modulus = abs(pivot)
        phase = 1.0 + 0.0j
        if modulus > 0.0:
            phase = pivot / modulus
        h = sigma * sigma + sigma * modulus
        u = np.empty(ii, dtype=np.complex128)
        for rr in range(ii):
            u[rr] = a[rr, ii]
        u[ii - 1] += phase * sigma
        pvec = np.zeros(ii, dtype=np.complex128)
        for rr in range(ii):
            acc = 0.0 + 0.0j
            for cc in range(ii):
                acc += a[rr, cc] * u[cc]
            pvec[rr] = acc / h
        kappa = 0.0 + 0.0j
        for rr in range(ii):
            kappa += np.conj(u[rr]) * pvec[rr]
        kappa /= 2.0 * h
        for rr in range(ii):
            pvec[rr] -= kappa * u[rr]
        # B <- B - q u^H - u q^H
        for rr in range(ii):
            for cc in range(ii):
                a[rr, cc] -= pvec[rr] * np.conj(u[cc]) + u[rr] * np.conj(pvec[cc])
        superdiag[ii] = -phase * sigma
        for rr in range(ii):
            reflectors[ii, rr] = u[rr]
        norms[ii] = h
    diagonal[0] = a[0, 0].real
    if n > 1:
        diagonal[1] = a[1, 1].real
        superdiag[1] = a[0, 1]
    # Absorb the superdiagonal phases: D T D^H is real
    phases = np.ones(n, dtype=np.complex128)
    offdiagonal = np.zeros(n, dtype=np.float64)
    for ii in range(1, n):
        modulus = abs(superdiag[ii])
        offdiagonal[ii] = modulus
        if modulus > 0.0:
            phases[ii] = phases[ii - 1] * superdiag[ii] / modulus
        else:
            phases[ii] = phases[ii - 1]
    if not accumulate:
        return diagonal, offdiagonal, np.zeros((0, 0), dtype=np.complex128)
    transform = np.eye(n, dtype=np.complex128)
    for ii in range(2, n):
        h = norms[ii]
        if h == 0.0:
            continue
        for rr in range(n):
            acc = 0.0 + 0.0j
            for cc in range(ii):
                acc += transform[rr, cc] * reflectors[ii, cc]
            acc /= h
            for cc in range(ii):
                transform[rr, cc] -= acc * np.conj(reflectors[ii, cc])
    for rr in range(n):
        for cc in range(n):
            transform[rr, cc] *= phases[rr]
    return diagonal, offdiagonal, transform


class TridiagonalForm:
    """
    Real symmetric tridiagonal matrix with an optional transform.

    Attributes:
        diagonal (numpy.ndarray): main diagonal.

        offdiagonal (numpy.ndarray): ``offdiagonal[i]`` couples rows ``i-1``
            and ``i``; ``offdiagonal[0]`` is unused and zero.

        transform (numpy.ndarray or None): rows of the orthogonal/unitary
            matrix ``P`` with ``P A P^H = T``.
    """

    def __init__(self, diagonal, offdiagonal, transform=None):
        self.diagonal = diagonal
        self.offdiagonal = offdiagonal
        self.transform = transform

    def to_dense(self):
        size = len(self.diagonal)
        dense = np.diag(self.diagonal)
        if size > 1:
            dense += np.diag(self.offdiagonal[1:], 1) + np.diag(self.offdiagonal[1:], -1)
        return dense


def tridiagonalize(matrix, accumulate=True):
    """
    Householder tridiagonalization of a real symmetric or complex Hermitian matrix.

    Args:
        matrix (numpy.ndarray): square matrix; only Hermiticity is assumed.

        accumulate (bool, optional): build the transform. Defaults to True.

    Returns:
        TridiagonalForm: real tridiagonal matrix and, if requested, the transform.
    """
    validate_parameters(array=matrix, accumulate=accumulate)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"matrix must be square, not {matrix.shape}")
    if np.iscomplexobj(matrix):
        kernel = householder_complex
        matrix = np.ascontiguousarray(matrix, dtype=np.complex128)
    else:
        kernel = householder_real
        matrix = np.ascontiguousarray(matrix, dtype=np.float64)
    diagonal, offdiagonal, transform = kernel(matrix, accumulate)
    return TridiagonalForm(diagonal, offdiagonal, transform if accumulate else None)
