"""Dense Hermitian eigensolver: Householder reduction followed by shifted QR."""

import numpy as np
import logging
from ed_ring.tools import validate_parameters
from .householder import tridiagonalize
from .tridiagonal_qr import MAX_QR_ITERATIONS, diagonalize_tridiagonal, eigen_order

logger = logging.getLogger(__name__)

__all__ = ["eigh_tridiagonal_qr", "diagonalization_accuracy"]


def eigh_tridiagonal_qr(matrix, accumulate=True, max_iter=MAX_QR_ITERATIONS):
    """
    Eigenvalues and eigenvectors of a real symmetric or complex Hermitian matrix.

    Args:
        matrix (numpy.ndarray): Hermitian matrix.

        accumulate (bool, optional): compute the eigenvectors. Defaults to True.

        max_iter (int, optional): QR sweeps allowed without deflation.

    Raises:
        NumericalNonConvergenceError: If the QR iteration fails.

    Returns:
        tuple: ``(eigenvalues, transform)``; ascending eigenvalues and the
        matrix ``Z`` whose row ``l`` is the complex conjugate of the ``l``-th
        eigenvector, i.e. ``Z @ matrix @ Z^H = diag(eigenvalues)``.
        ``transform`` is None when ``accumulate`` is False.
    """
    validate_parameters(array=matrix, accumulate=accumulate)
    tridiag = tridiagonalize(matrix, accumulate)
    eigenvalues, transform = diagonalize_tridiagonal(
        tridiag.diagonal, tridiag.offdiagonal, tridiag.transform, max_iter
    )
    order = eigen_order(eigenvalues)
    eigenvalues = eigenvalues[order]
    if transform is not None:
        transform = np.ascontiguousarray(transform[order])
    return eigenvalues, transform


def diagonalization_accuracy(matrix, eigenvalues, transform):
    """
    Schur (Frobenius) norms measuring the quality of a diagonalization.

    Args:
        matrix (numpy.ndarray): the diagonalized Hermitian matrix ``A``.

        eigenvalues (numpy.ndarray): eigenvalues ``Lambda``.

        transform (numpy.ndarray): rows ``Z`` with ``Z A Z^H = Lambda``.

    Returns:
        tuple: ``(unitarity, reconstruction)``, the norms of ``Z^H Z - 1`` and
        ``Z^H Lambda Z - A``.
    """
    validate_parameters(array=matrix)
    validate_parameters(array=transform)
    identity = np.eye(matrix.shape[0])
    unitarity = np.linalg.norm(transform.conj().T @ transform - identity)
    rebuilt = transform.conj().T @ (eigenvalues[:, None] * transform)
    reconstruction = np.linalg.norm(rebuilt - matrix)
    return unitarity, reconstruction
