import numpy as np
from scipy.linalg import eigvalsh
from ed_ring.algorithms import (
    tridiagonalize,
    diagonalize_tridiagonal,
    eigen_order,
    eigh_tridiagonal_qr,
    diagonalization_accuracy,
)
from ed_ring.tools import NumericalNonConvergenceError


def _random_hermitian(size, complex_entries, seed):
    rng = np.random.default_rng(seed)
    matrix = rng.normal(size=(size, size))
    if complex_entries:
        matrix = matrix + 1j * rng.normal(size=(size, size))
    return (matrix + matrix.conj().T) / 2


def test_householder_stage():
    for complex_entries in [False, True]:
        for size in [1, 2, 3, 8, 21]:
            matrix = _random_hermitian(size, complex_entries, seed=size)
            tridiag = tridiagonalize(matrix)
            rows = tridiag.transform
            if np.linalg.norm(rows @ rows.conj().T - np.eye(size)) > 1e-11:
                raise ValueError(f"eigensolver test: FAIL, transform not unitary (n={size})")
            reduced = rows @ matrix @ rows.conj().T
            if np.linalg.norm(reduced - tridiag.to_dense()) > 1e-11:
                raise ValueError(f"eigensolver test: FAIL on the tridiagonal form (n={size})")
            # The phases of the Hermitian reduction are absorbed in the transform
            if complex_entries and np.any(tridiag.offdiagonal < 0):
                raise ValueError("eigensolver test: FAIL, negative off-diagonal entries")


def test_qr_stage():
    # Free particle hopping on an open chain: -2 cos(pi j / (n+1))
    size = 12
    diagonal = np.zeros(size)
    offdiagonal = np.concatenate([[0.0], -np.ones(size - 1)])
    eigenvalues, rows = diagonalize_tridiagonal(diagonal, offdiagonal, np.eye(size))
    exact = -2 * np.cos(np.pi * np.arange(1, size + 1) / (size + 1))
    if not np.allclose(np.sort(eigenvalues), np.sort(exact), atol=1e-13):
        raise ValueError("eigensolver test: FAIL on the chain eigenvalues")
    dense = np.diag(offdiagonal[1:], 1) + np.diag(offdiagonal[1:], -1)
    if np.linalg.norm(rows @ dense @ rows.T - np.diag(eigenvalues)) > 1e-12:
        raise ValueError("eigensolver test: FAIL on the chain eigenvectors")
    order = eigen_order(np.array([3.0, -1.0, 2.0, -1.0]))
    if list(order) != [1, 3, 2, 0]:
        raise ValueError("eigensolver test: FAIL on the eigenvalue ordering")
    # A split matrix deflates immediately
    values, none = diagonalize_tridiagonal(np.array([2.0, 1.0]), np.zeros(2))
    if none is not None or sorted(values) != [1.0, 2.0]:
        raise ValueError("eigensolver test: FAIL on a diagonal matrix")


def test_full_solver():
    for complex_entries in [False, True]:
        for size in [1, 4, 17, 40]:
            matrix = _random_hermitian(size, complex_entries, seed=100 + size)
            eigenvalues, rows = eigh_tridiagonal_qr(matrix)
            if np.any(np.diff(eigenvalues) < 0):
                raise ValueError("eigensolver test: FAIL, eigenvalues not ascending")
            if not np.allclose(eigenvalues, eigvalsh(matrix), atol=1e-11):
                raise ValueError(f"eigensolver test: FAIL against scipy (n={size})")
            diag = rows @ matrix @ rows.conj().T
            if np.linalg.norm(diag - np.diag(eigenvalues)) > 1e-10:
                raise ValueError(f"eigensolver test: FAIL on Z A Z^H (n={size})")
            unitarity, reconstruction = diagonalization_accuracy(matrix, eigenvalues, rows)
            if unitarity > 1e-11 or reconstruction > 1e-10:
                raise ValueError(f"eigensolver test: FAIL on the accuracy (n={size})")
            values_only, none = eigh_tridiagonal_qr(matrix, accumulate=False)
            if none is not None or not np.allclose(values_only, eigenvalues, atol=1e-12):
                raise ValueError("eigensolver test: FAIL without eigenvectors")


def test_degenerate_spectrum():
    rng = np.random.default_rng(7)
    unitary, _ = np.linalg.qr(rng.normal(size=(10, 10)))
    spectrum = np.array([-3.0, -3.0, -3.0, -1.0, -1.0, 0.0, 0.0, 0.0, 0.0, 2.0])
    matrix = unitary @ np.diag(spectrum) @ unitary.T
    matrix = (matrix + matrix.T) / 2
    eigenvalues, rows = eigh_tridiagonal_qr(matrix)
    if not np.allclose(eigenvalues, spectrum, atol=1e-11):
        raise ValueError("eigensolver test: FAIL on a degenerate spectrum")
    if np.linalg.norm(rows @ rows.T - np.eye(10)) > 1e-11:
        raise ValueError("eigensolver test: FAIL on degenerate eigenvectors")


def test_iteration_cap():
    matrix = _random_hermitian(8, False, seed=3)
    try:
        eigh_tridiagonal_qr(matrix, max_iter=0)
    except NumericalNonConvergenceError:
        pass
    else:
        raise ValueError("eigensolver test: FAIL, iteration cap not enforced")


def main():
    test_householder_stage()
    test_qr_stage()
    test_full_solver()
    test_degenerate_spectrum()
    test_iteration_cap()
    print("Eigensolver test: PASS")


if __name__ == "__main__":
    main()
