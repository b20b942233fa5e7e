"""Spectral decomposition of the ring generator, one momentum sector at a time.

For every independent sector ``q`` the symmetrized block is diagonalized,
and the eigenvectors are post-processed so that they can be stored in real
arithmetic:

- for ``q != 0`` the block satisfies ``H[m(i), m(j)] = conj(H[i, j])``, with
  ``m`` the mirror map. Each degenerate eigenspace is given an orthonormal
  basis invariant under ``z -> conj(z[m])``, so that a palindromic column is
  real and a mirror pair is fully described by one complex column;
- for ``q = 0`` the stationary eigenvector gets a positive sign and, on
  request, the eigenvectors are made mirror symmetric or antisymmetric.
"""

import numpy as np
import logging
from ed_ring.tools import get_time, validate_parameters, check_rates, InputValidationError
from ed_ring.algorithms import eigh_tridiagonal_qr, diagonalization_accuracy
from ed_ring.modeling import (
    build_momentum_block,
    check_momentum,
    check_stationary_state,
    momentum_values,
    n_momentum_sectors,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEGENERACY_TOLERANCE",
    "PARITY_TOLERANCE",
    "degenerate_clusters",
    "adapt_to_mirror",
    "orthonormalize_rows",
    "pack_transform",
    "unpack_transform",
    "mirror_parity",
    "EIGENVECTOR_KINDS",
    "eigenvector_rows",
    "momentum_contribution",
    "one_particle_eigenvalue",
    "MomentumSpectrum",
    "SpectralDecomposition",
    "compute_sector",
    "compute_spectrum",
]

DEGENERACY_TOLERANCE = 1e-9
PARITY_TOLERANCE = 1e-15
EIGENVECTOR_KINDS = ("symmetric", "left", "right")


def degenerate_clusters(eigenvalues, tolerance=DEGENERACY_TOLERANCE):
    """Split ascending eigenvalues into ``(start, stop)`` runs of degenerate values."""
    clusters = []
    start = 0
    for ii in range(1, len(eigenvalues) + 1):
        if ii == len(eigenvalues) or eigenvalues[ii] - eigenvalues[ii - 1] > tolerance * max(
            1.0, abs(eigenvalues[ii - 1])
        ):
            clusters.append((start, ii))
            start = ii
    return clusters


def _mirror_adapted_basis(rows, mirror, antiunitary):
    # Symmetric and antisymmetric parts span the same eigenspace
    if antiunitary:
        reflected = np.conj(rows[:, mirror])
        candidates = np.concatenate([(rows + reflected) / 2, 1j * (rows - reflected) / 2])
    else:
        reflected = rows[:, mirror]
        candidates = np.concatenate([(rows + reflected) / 2, (rows - reflected) / 2])
    adapted = np.zeros_like(rows)
    for ll in range(rows.shape[0]):
        # Pivoted Gram-Schmidt; overlaps are real for mirror-invariant vectors
        norms = np.linalg.norm(candidates, axis=1)
        best = int(np.argmax(norms))
        vector = candidates[best] / norms[best]
        for _ in range(2):
            for mm in range(ll):
                overlap = np.vdot(adapted[mm], vector)
                vector = vector - (overlap.real if antiunitary else overlap) * adapted[mm]
            vector = vector / np.linalg.norm(vector)
        adapted[ll] = vector
        overlaps = candidates @ np.conj(vector)
        if antiunitary:
            overlaps = overlaps.real
        candidates = candidates - overlaps[:, None] * vector[None, :]
    return adapted


def adapt_to_mirror(eigenvalues, transform, mirror, antiunitary):
    """
    Recombine degenerate eigenvectors into a mirror-adapted orthonormal basis.

    Args:
        eigenvalues (numpy.ndarray): ascending eigenvalues.

        transform (numpy.ndarray): eigenvector rows ``Z``.

        mirror (numpy.ndarray): mirror map of the primitive basis.

        antiunitary (bool): use ``z -> conj(z[mirror])`` (``q != 0``) instead of
            ``z -> z[mirror]`` (``q = 0``).

    Returns:
        numpy.ndarray: new rows spanning the same eigenspaces.
    """
    adapted = np.array(transform, copy=True)
    for start, stop in degenerate_clusters(eigenvalues):
        adapted[start:stop] = _mirror_adapted_basis(
            transform[start:stop], mirror, antiunitary
        )
    return orthonormalize_rows(adapted, antiunitary)


def orthonormalize_rows(rows, antiunitary):
    """
    Symmetric (Loewdin) orthonormalization ``G^(-1/2) Z`` of mirror-adapted rows.

    Close but separate eigenvalues leave a small admixture of the neighbouring
    eigenvectors in each adapted row, so rows of different clusters are not
    exactly orthogonal. The overlap matrix ``G = Z Z^H`` of mirror-invariant
    rows is real, hence the correction keeps the invariance.
    """
    gram = rows @ rows.conj().T
    if antiunitary:
        gram = gram.real
    values, vectors = np.linalg.eigh(gram)
    inverse_root = (vectors / np.sqrt(values)[None, :]) @ vectors.conj().T
    return inverse_root @ rows


def pack_transform(transform, mirror):
    """
    Real storage of a mirror-adapted complex transform.

    A palindromic column keeps its real part. For a mirror pair
    ``low < high`` the lower column stores the real part and the higher
    column the imaginary part of the column ``high``.
    """
    validate_parameters(array=transform)
    if not np.iscomplexobj(transform):
        return np.array(transform, dtype=np.float64)
    columns = np.arange(len(mirror))
    palindromic = mirror == columns
    low = columns[columns < mirror]
    high = mirror[low]
    packed = np.zeros(transform.shape, dtype=np.float64)
    packed[:, palindromic] = transform[:, palindromic].real
    packed[:, low] = transform[:, high].real
    packed[:, high] = transform[:, high].imag
    return packed


def unpack_transform(packed, mirror):
    """Inverse of :func:`pack_transform` for a complex sector."""
    validate_parameters(array=packed)
    columns = np.arange(len(mirror))
    palindromic = mirror == columns
    low = columns[columns < mirror]
    high = mirror[low]
    transform = np.zeros(packed.shape, dtype=np.complex128)
    transform[:, palindromic] = packed[:, palindromic]
    transform[:, high] = packed[:, low] + 1j * packed[:, high]
    transform[:, low] = np.conj(transform[:, high])
    return transform


def mirror_parity(row, mirror, tolerance=PARITY_TOLERANCE):
    """Return ``"symmetric"``, ``"antisymmetric"`` or ``"mixed symmetry"`` for a q=0 eigenvector."""
    reflected = row[mirror]
    if np.sum(np.abs(row - reflected) ** 2) < tolerance:
        return "symmetric"
    if np.sum(np.abs(row + reflected) ** 2) < tolerance:
        return "antisymmetric"
    return "mixed symmetry"


class MomentumSpectrum:
    """
    Eigen-decomposition of one momentum block.

    Attributes:
        q (int): momentum index.

        eigenvalues (numpy.ndarray): ascending eigenvalues.

        transform (numpy.ndarray or None): rows ``Z`` with ``Z H Z^H = diag``;
            real for ``q = 0``, complex otherwise.

        accuracy (tuple or None): Schur norms of ``Z^H Z - 1`` and ``Z^H L Z - H``.
    """

    def __init__(self, q, eigenvalues, transform=None, accuracy=None):
        self.q = q
        self.eigenvalues = eigenvalues
        self.transform = transform
        self.accuracy = accuracy

    @property
    def stationary_index(self):
        """Index of the largest (zero, for q=0) eigenvalue."""
        return int(np.argmax(self.eigenvalues))


@get_time
def compute_sector(
    q,
    basis,
    tables,
    weights,
    rates,
    eigenvalues_only=False,
    symmetrize_eigenvectors=False,
    check_accuracy=False,
):
    """
    Build and diagonalize the block of momentum ``q``.

    Returns:
        MomentumSpectrum: the post-processed decomposition.
    """
    check_momentum(q, basis.p)
    block = build_momentum_block(q, tables, weights, rates)
    if q == 0:
        check_stationary_state(block, weights)
    logger.info(f"Diagonalizing submatrix for momentum q = {q}")
    eigenvalues, transform = eigh_tridiagonal_qr(block, accumulate=not eigenvalues_only)
    accuracy = None
    if transform is not None:
        if q == 0:
            if symmetrize_eigenvectors:
                transform = adapt_to_mirror(eigenvalues, transform, basis.mirror, False)
            stationary = int(np.argmax(eigenvalues))
            if np.sum(transform[stationary]) < 0:
                transform[stationary] *= -1
        else:
            transform = adapt_to_mirror(eigenvalues, transform, basis.mirror, True)
            # Keep exactly what the packed storage can hold
            transform = unpack_transform(pack_transform(transform, basis.mirror), basis.mirror)
        if check_accuracy:
            accuracy = diagonalization_accuracy(block, eigenvalues, transform)
            logger.info(f"q={q} accuracy: unitarity {accuracy[0]:.3e}, matrix {accuracy[1]:.3e}")
    return MomentumSpectrum(q, eigenvalues, transform, accuracy)


class SpectralDecomposition:
    """
    Eigen-decomposition of all (or some) independent momentum sectors.

    Args:
        p (int): number of sites.

        k (int): number of particles.

        rates (numpy.ndarray): ``[RateA, RateB, RateC, RateD]``.

        sectors (dict): ``{q: MomentumSpectrum}``.

        mirror (numpy.ndarray): mirror map of the primitive basis.
    """

    def __init__(self, p, k, rates, sectors, mirror):
        self.p = p
        self.k = k
        self.rates = np.asarray(rates, dtype=np.float64)
        self.sectors = sectors
        self.mirror = mirror

    @property
    def q_values(self):
        return sorted(self.sectors)

    @property
    def is_complete(self):
        return self.q_values == momentum_values(self.p)

    @property
    def has_transform(self):
        return all(sector.transform is not None for sector in self.sectors.values())

    @property
    def n_primitives(self):
        return len(self.mirror)

    def __getitem__(self, q):
        return self.sectors[q]

    def pack(self):
        """
        Flat real arrays of the eigenvalues and, if present, of the transforms.

        Returns:
            tuple: ``(eigenvalues, transforms)`` of sizes ``(p+1)/2 * n`` and
            ``(p+1)/2 * n**2`` (``transforms`` is None without eigenvectors).
        """
        if not self.is_complete:
            raise ValueError("only the full set of momentum sectors can be packed")
        eigenvalues = np.concatenate([self.sectors[q].eigenvalues for q in self.q_values])
        if not self.has_transform:
            return eigenvalues, None
        transforms = np.concatenate(
            [
                pack_transform(self.sectors[q].transform, self.mirror).ravel()
                for q in self.q_values
            ]
        )
        return eigenvalues, transforms

    @classmethod
    def from_packed(cls, p, k, rates, eigenvalues, transforms, mirror):
        """Rebuild a decomposition from the arrays returned by :meth:`pack`."""
        n_prim = len(mirror)
        n_q = n_momentum_sectors(p)
        if eigenvalues.size != n_q * n_prim:
            raise ValueError(f"expected {n_q * n_prim} eigenvalues, got {eigenvalues.size}")
        if transforms is not None and transforms.size != n_q * n_prim**2:
            raise ValueError(f"expected {n_q * n_prim**2} entries, got {transforms.size}")
        sectors = {}
        for q in range(n_q):
            values = eigenvalues[q * n_prim : (q + 1) * n_prim].copy()
            transform = None
            if transforms is not None:
                block = transforms[q * n_prim**2 : (q + 1) * n_prim**2]
                block = block.reshape(n_prim, n_prim).copy()
                transform = block if q == 0 else unpack_transform(block, mirror)
            sectors[q] = MomentumSpectrum(q, values, transform)
        return cls(p, k, rates, sectors, mirror)


def compute_spectrum(
    basis,
    tables,
    weights,
    rates,
    q_values=None,
    eigenvalues_only=False,
    symmetrize_eigenvectors=False,
    check_accuracy=False,
):
    """
    Diagonalize the requested momentum sectors.

    Args:
        basis (PrimitiveBasis): primitive patterns.

        tables (RateTables): transition counts.

        weights (numpy.ndarray): equilibrium weights.

        rates (dict or numpy.ndarray): jump rates.

        q_values (list, optional): sectors to compute; all by default.

        eigenvalues_only (bool, optional): skip the eigenvectors.

        symmetrize_eigenvectors (bool, optional): mirror-adapt the q=0 eigenvectors.

        check_accuracy (bool, optional): store the accuracy norms.

    Returns:
        SpectralDecomposition: the computed sectors.
    """
    if isinstance(rates, dict):
        rates = check_rates(rates)
    if q_values is None:
        q_values = momentum_values(basis.p)
    sectors = {}
    for q in q_values:
        sectors[q] = compute_sector(
            q,
            basis,
            tables,
            weights,
            rates,
            eigenvalues_only=eigenvalues_only,
            symmetrize_eigenvectors=symmetrize_eigenvectors,
            check_accuracy=check_accuracy,
        )
    return SpectralDecomposition(basis.p, basis.k, rates, sectors, basis.mirror)


def eigenvector_rows(transform, weights, p, kind="symmetric"):
    """
    Eigenvectors as rows, for the symmetrized or the original rate matrix.

    Args:
        transform (numpy.ndarray): rows ``Z`` of a momentum sector.

        weights (numpy.ndarray): equilibrium weights.

        p (int): number of sites.

        kind (str, optional): ``"symmetric"`` for the symmetrized block,
            ``"left"`` or ``"right"`` for the eigenvectors of the rate matrix,
            normalized so that ``left . right = 1``.
    """
    if kind == "symmetric":
        return np.conj(transform)
    if kind == "right":
        return np.conj(transform) * np.sqrt(weights / p)[None, :]
    if kind == "left":
        return transform * np.sqrt(p / weights)[None, :]
    raise InputValidationError(f"eigenvector kind must be in {EIGENVECTOR_KINDS}, not {kind}")


def momentum_contribution(q, transform, basis, weights):
    """
    Contribution of every eigenvector of sector ``q`` to the one-site momentum average ``<q>``.

    For ``q = 0`` the observable is the particle number ``k``; otherwise each
    primitive contributes the sum of ``omega^(q nu)`` over its occupied sites.
    """
    p = basis.p
    scale = np.sqrt(weights / p)
    if q == 0:
        return np.real(transform @ (basis.k * scale))
    occupied = (basis.codes[:, None] >> np.arange(p)[None, :]) & 1
    projection = occupied @ np.exp(2j * np.pi * q * np.arange(p) / p)
    return np.real(transform * np.conj(projection)[None, :]) @ scale


def one_particle_eigenvalue(q, p, rate):
    """Decay rate of momentum ``q`` for a single particle hopping with ``rate``."""
    return -4.0 * rate * np.sin(np.pi * q / p) ** 2
