"""Canonical basis of rotation classes ("primitive patterns") on a prime ring.

On a ring with a prime number ``p`` of sites and ``0 < k < p`` particles, the
``p`` rotations of any configuration are distinct and exactly one of them has
a vanishing pattern sum. That rotation is the *primitive* representative of
the orbit, and the basis holds ``C(p, k) / p`` of them in ascending order.
"""

import numpy as np
from numba import njit
from scipy.special import comb
import logging
from ed_ring.tools import (
    get_time,
    validate_parameters,
    check_ring_size,
    check_particle_number,
    BasisLookupError,
    InputValidationError,
    ResourceExhaustedError,
)
from .pattern import (
    Pattern,
    encode_pattern,
    pattern_sum,
    element_site,
    mirror_code,
    reduce_code,
    count_occupied,
)

logger = logging.getLogger(__name__)

__all__ = [
    "MAX_PRIMITIVES",
    "primitive_count",
    "generate_primitive_codes",
    "code_to_index_binarysearch",
    "build_mirror_map",
    "PrimitiveBasis",
]

MAX_PRIMITIVES = 8192


def primitive_count(p, k):
    """Number of rotation classes of ``k`` particles on ``p`` sites, ``C(p, k) / p``."""
    validate_parameters(p=p, k=k)
    return comb(p, k, exact=True) // p


@njit(cache=True)
def generate_primitive_codes(p, k, n_primitives):
    """Enumerate the primitive codes in ascending numeric order.

    The walk starts from the ``k`` lowest sites occupied. At each step the
    lowest particle whose successor site is empty moves forward by one, and
    the particles below it are packed back to the lowest sites. Codes with a
    vanishing pattern sum are recorded until ``n_primitives`` are found.

    Parameters
    ----------
    p : int
        Number of ring sites.
    k : int
        Number of particles.
    n_primitives : int
        Number of codes to record.

    Returns
    -------
    numpy.ndarray
        ``int64`` array of recorded codes. It is shorter than
        ``n_primitives`` only if the walk ran out of configurations.
    """
    codes = np.zeros(n_primitives, dtype=np.int64)
    current = np.int64((1 << k) - 1)
    found = 0
    while True:
        if pattern_sum(current, p) == 0:
            codes[found] = current
            found += 1
            if found == n_primitives:
                break
        # Lowest particle that can move forward
        moved = 0
        position = -1
        for nu in range(1, k + 1):
            position = element_site(current, nu, p)
            if position + 1 < p and not (current >> (position + 1)) & 1:
                moved = nu
                break
        if moved == 0:
            break
        current = (current & ~(np.int64(1) << position)) | (np.int64(1) << (position + 1))
        # Pack the lower particles to the start of the ring
        current &= ~((np.int64(1) << position) - 1)
        current |= (np.int64(1) << (moved - 1)) - 1
    return codes[:found]


@njit(cache=True)
def code_to_index_binarysearch(code, codes):
    """Index of ``code`` in the ascending array ``codes``, or -1 if absent."""
    low = 0
    high = len(codes) - 1
    while low <= high:
        mid = (low + high) // 2
        if codes[mid] == code:
            return mid
        elif codes[mid] < code:
            low = mid + 1
        else:
            high = mid - 1
    return -1


@njit(cache=True)
def build_mirror_map(codes, p):
    """Index of the reflected image of every primitive (-1 marks a missing image)."""
    mirror = np.zeros(len(codes), dtype=np.int64)
    for ii in range(len(codes)):
        mirror[ii] = code_to_index_binarysearch(mirror_code(codes[ii], p), codes)
    return mirror


class PrimitiveBasis:
    """
    Ascending basis of primitive patterns for ``k`` particles on ``p`` sites.

    The object is read-only once built: ``codes``, ``mirror`` and
    ``palindromic`` are non-writeable arrays.

    Args:
        p (int): prime number of sites, in [3, 31].

        k (int): number of particles, ``0 < k < p``.

        max_primitives (int, optional): ceiling on the basis size.

    Raises:
        InputValidationError: If ``p`` or ``k`` are not acceptable.

        ResourceExhaustedError: If the basis exceeds ``max_primitives``.
    """

    def __init__(self, p, k, max_primitives=MAX_PRIMITIVES):
        check_ring_size(p)
        check_particle_number(p, k)
        self.p = int(p)
        self.k = int(k)
        self.n_primitives = primitive_count(self.p, self.k)
        if self.n_primitives > max_primitives:
            msg = f"{self.n_primitives} primitive patterns exceed the limit of {max_primitives}"
            raise ResourceExhaustedError(msg)
        logger.info(f"Selecting {self.n_primitives} primitive patterns")
        self._build()

    @get_time
    def _build(self):
        codes = generate_primitive_codes(self.p, self.k, self.n_primitives)
        if len(codes) != self.n_primitives:
            msg = f"found {len(codes)} of {self.n_primitives} primitive patterns"
            raise BasisLookupError(msg)
        mirror = build_mirror_map(codes, self.p)
        if np.any(mirror < 0):
            raise BasisLookupError("mirror image missing from the primitive basis")
        codes.setflags(write=False)
        mirror.setflags(write=False)
        self.codes = codes
        self.mirror = mirror
        self.palindromic = mirror == np.arange(self.n_primitives)
        self.palindromic.setflags(write=False)
        self.n_palindromic = int(np.sum(self.palindromic))
        logger.info(f"{self.n_primitives} primitives, {self.n_palindromic} palindromic")

    def __len__(self):
        return self.n_primitives

    def index_of(self, code):
        """
        Position of a primitive code in the basis.

        Raises:
            BasisLookupError: If the code is not a primitive of this basis.
        """
        index = code_to_index_binarysearch(np.int64(code), self.codes)
        if index < 0:
            raise BasisLookupError(f"code {code} is not a primitive pattern")
        return int(index)

    def locate(self, pattern):
        """
        Primitive index and shift of an arbitrary configuration.

        Args:
            pattern (str, int or Pattern): configuration with ``k`` particles.

        Returns:
            tuple: ``(state, shift)`` such that rotating primitive ``state``
            forward ``shift`` times gives ``pattern``.
        """
        if isinstance(pattern, str):
            code = encode_pattern(pattern, self.p)
        elif isinstance(pattern, Pattern):
            code = pattern.code
        else:
            code = int(pattern)
        if count_occupied(np.int64(code), self.p) != self.k:
            msg = f"configuration {code} does not carry {self.k} particles"
            raise InputValidationError(msg)
        primitive, shift = reduce_code(np.int64(code), self.p)
        return self.index_of(primitive), int(shift)

    def pattern(self, index):
        return Pattern(self.codes[index], self.p)

    def graphics(self, index):
        return self.pattern(index).to_string()
