"""Rate-independent transition counts between primitive patterns.

Every single-particle hop connecting two configurations is classified by its
jump type:

- ``A`` (0): the particle neither leaves a neighbour nor reaches one,
- ``B`` (1): the particle leaves the neighbour it had behind,
- ``C`` (2): the particle lands next to a particle ahead,
- ``D`` (3): both at once.

The counts per type are stored for increments (``forward``) and decrements
(``backward``) between rotation classes, together with the total number of
legal moves out of each class (``diagonal``). The jump rates only enter later,
when the momentum blocks are assembled.
"""

import numpy as np
from numba import njit
import logging
from ed_ring.tools import get_time, check_rates, BasisLookupError
from .pattern import element_site, reduce_code
from .primitive_basis import code_to_index_binarysearch

logger = logging.getLogger(__name__)

__all__ = [
    "JUMP_TYPES",
    "swap_jump_type",
    "increment_jump",
    "decrement_jump",
    "assemble_rate_counts",
    "collapsing_number",
    "collapsing_numbers",
    "RateTables",
    "build_rate_tables",
    "check_rate_symmetry",
    "equilibrium_weights",
]

JUMP_TYPES = ("A", "B", "C", "D")


def swap_jump_type(jump_type):
    """Exchange the B and C types, which are reversed by the inverse move."""
    return (0, 2, 1, 3)[jump_type]


@njit(cache=True)
def increment_jump(code, nu, p):
    """Move particle ``nu`` one site forward.

    Parameters
    ----------
    code : int
        Configuration code.
    nu : int
        Particle ordinal (1-based).
    p : int
        Number of ring sites.

    Returns
    -------
    tuple
        ``(new_code, jump_type)``; ``jump_type`` is -1 if the target site is
        occupied and the move is blocked.
    """
    site = element_site(code, nu, p)
    target = (site + 1) % p
    if (code >> target) & 1:
        return code, -1
    new_code = (code & ~(np.int64(1) << site)) | (np.int64(1) << target)
    behind = (new_code >> ((site + p - 1) % p)) & 1
    ahead = (new_code >> ((target + 1) % p)) & 1
    return new_code, behind + 2 * ahead


@njit(cache=True)
def decrement_jump(code, nu, p):
    """Move particle ``nu`` one site backward; see :func:`increment_jump`."""
    site = element_site(code, nu, p)
    target = (site + p - 1) % p
    if (code >> target) & 1:
        return code, -1
    new_code = (code & ~(np.int64(1) << site)) | (np.int64(1) << target)
    behind = (new_code >> ((site + 1) % p)) & 1
    ahead = (new_code >> ((target + p - 1) % p)) & 1
    return new_code, behind + 2 * ahead


@njit(cache=True)
def assemble_rate_counts(codes, p, k):
    """Count the increments and decrements between primitive patterns.

    Parameters
    ----------
    codes : numpy.ndarray
        Ascending primitive codes.
    p : int
        Number of ring sites.
    k : int
        Number of particles.

    Returns
    -------
    tuple
        ``(forward, backward, diagonal, forward_shifts, backward_shifts, status)``.
        ``forward[j, i, T]`` counts increments of type ``T`` leading from
        primitive ``i`` to the class of primitive ``j`` (likewise
        ``backward`` for decrements), ``diagonal[i, T]`` counts every legal
        move out of ``i``. The shift arrays flag (with 1) every rotation
        shift observed in the reductions. ``status`` is -1 on success, or the
        index of a primitive whose move left the basis.
    """
    n_prim = len(codes)
    forward = np.zeros((n_prim, n_prim, 4), dtype=np.int64)
    backward = np.zeros((n_prim, n_prim, 4), dtype=np.int64)
    diagonal = np.zeros((n_prim, 4), dtype=np.int64)
    forward_shifts = np.zeros(p, dtype=np.int64)
    backward_shifts = np.zeros(p, dtype=np.int64)
    for ii in range(n_prim):
        for nu in range(1, k + 1):
            # Increment
            new_code, jump = increment_jump(codes[ii], nu, p)
            if jump >= 0:
                primitive, shift = reduce_code(new_code, p)
                jj = code_to_index_binarysearch(primitive, codes)
                if jj < 0:
                    return forward, backward, diagonal, forward_shifts, backward_shifts, ii
                diagonal[ii, jump] += 1
                forward[jj, ii, jump] += 1
                forward_shifts[shift] = 1
            # Decrement
            new_code, jump = decrement_jump(codes[ii], nu, p)
            if jump >= 0:
                primitive, shift = reduce_code(new_code, p)
                jj = code_to_index_binarysearch(primitive, codes)
                if jj < 0:
                    return forward, backward, diagonal, forward_shifts, backward_shifts, ii
                diagonal[ii, jump] += 1
                backward[jj, ii, jump] += 1
                backward_shifts[shift] = 1
    return forward, backward, diagonal, forward_shifts, backward_shifts, -1


@njit(cache=True)
def collapsing_number(code, p, k):
    """Net number of C minus B jumps that pack all particles behind the first one.

    Particles ``2..k`` are moved backward, in order, until each one touches
    its predecessor.
    """
    c_num = 0
    for nu in range(2, k + 1):
        while True:
            new_code, jump = decrement_jump(code, nu, p)
            if jump < 0:
                break
            code = new_code
            if jump == 1:
                c_num -= 1
            elif jump == 2:
                c_num += 1
    return c_num


@njit(cache=True)
def collapsing_numbers(codes, p, k):
    c_nums = np.zeros(len(codes), dtype=np.int64)
    for ii in range(len(codes)):
        c_nums[ii] = collapsing_number(codes[ii], p, k)
    return c_nums


class RateTables:
    """
    Read-only transition counts of a :class:`PrimitiveBasis`.

    Attributes:
        forward (numpy.ndarray): ``(n, n, 4)`` increment counts, ``[dest, src, type]``.

        backward (numpy.ndarray): ``(n, n, 4)`` decrement counts, ``[dest, src, type]``.

        diagonal (numpy.ndarray): ``(n, 4)`` legal moves out of each primitive.

        forward_shift (int): rotation shift of every increment, ``k^-1 mod p``.

        backward_shift (int): rotation shift of every decrement, ``p - forward_shift``.
    """

    def __init__(self, basis, forward, backward, diagonal, forward_shift, backward_shift):
        self.basis = basis
        for array in (forward, backward, diagonal):
            array.setflags(write=False)
        self.forward = forward
        self.backward = backward
        self.diagonal = diagonal
        self.forward_shift = int(forward_shift)
        self.backward_shift = int(backward_shift)

    def weighted(self, rates):
        """
        Contract the jump types with the rates.

        Args:
            rates (numpy.ndarray): ``[RateA, RateB, RateC, RateD]``.

        Returns:
            tuple: ``(forward, backward, outflow)``; two ``(n, n)`` rate
            matrices ``[dest, src]`` and the total outflow rate of each primitive.
        """
        rates = np.asarray(rates, dtype=np.float64)
        return self.forward @ rates, self.backward @ rates, self.diagonal @ rates


@get_time
def build_rate_tables(basis):
    """
    Classify all single-particle moves between the primitives of ``basis``.

    Raises:
        BasisLookupError: If a move leaves the basis or if the reductions do
        not produce the single rotation shift expected for each direction.
    """
    logger.info("Establishing decay coefficient matrix")
    p, k = basis.p, basis.k
    forward, backward, diagonal, fw_shifts, bw_shifts, status = assemble_rate_counts(
        basis.codes, p, k
    )
    if status >= 0:
        msg = f"a move out of primitive {status} left the primitive basis"
        raise BasisLookupError(msg)
    forward_shift = pow(k, -1, p)
    backward_shift = (p - forward_shift) % p
    if list(np.flatnonzero(fw_shifts)) != [forward_shift]:
        msg = f"increment shifts {np.flatnonzero(fw_shifts)} != [{forward_shift}]"
        raise BasisLookupError(msg)
    if list(np.flatnonzero(bw_shifts)) != [backward_shift]:
        msg = f"decrement shifts {np.flatnonzero(bw_shifts)} != [{backward_shift}]"
        raise BasisLookupError(msg)
    return RateTables(basis, forward, backward, diagonal, forward_shift, backward_shift)


def check_rate_symmetry(tables):
    """
    Check that every increment is undone by a decrement of swapped B/C type.

    Args:
        tables (RateTables): transition counts.

    Raises:
        ValueError: If ``forward[j, i, T] != backward[i, j, swap(T)]`` somewhere.
    """
    swapped = tables.backward[:, :, [swap_jump_type(t) for t in range(4)]]
    mismatch = tables.forward != np.transpose(swapped, (1, 0, 2))
    if np.any(mismatch):
        jj, ii, jump = np.argwhere(mismatch)[0]
        msg = f"forward[{jj},{ii},{JUMP_TYPES[jump]}] has no matching backward move"
        raise ValueError(msg)
    logger.debug("RATE TABLE SYMMETRY VALIDATED")


def equilibrium_weights(basis, rates):
    """
    Stationary probability of each primitive pattern.

    The weight of a primitive is ``(RateB / RateC) ** CNum``, with ``CNum`` its
    collapsing number. Each weight stands for the ``p`` rotations of its
    class, hence the normalization to ``1 / p``.

    Args:
        basis (PrimitiveBasis): the primitive patterns.

        rates (dict or numpy.ndarray): jump rates.

    Returns:
        numpy.ndarray: positive weights summing to ``1 / p``.
    """
    if isinstance(rates, dict):
        rates = check_rates(rates)
    c_nums = collapsing_numbers(basis.codes, basis.p, basis.k)
    ratio = rates[1] / rates[2]
    weights = ratio ** c_nums.astype(np.float64)
    weights /= basis.p * np.sum(weights)
    return weights
