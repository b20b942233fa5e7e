"""Bit-level codec for particle configurations on a ring of ``p`` sites.

A configuration is stored as an integer *code* whose bit ``i`` marks an occupied
site ``i``. The graphical representation is a string of length ``p`` where the
character ``i`` describes site ``i``: ``"o"`` for a particle, ``"."`` for a hole.
Averaging patterns may also contain the wildcard ``"x"``, matching both.

The compiled kernels below act on plain ``int64`` codes and are shared by the
basis builder, the rate assembler and the evolution stage. The :class:`Pattern`
class is an immutable value wrapping a code, whose rotations and reflections
always return new values.
"""

import numpy as np
from numba import njit
import logging
from ed_ring.tools import InvalidPatternError, validate_parameters

logger = logging.getLogger(__name__)

__all__ = [
    "OCCUPIED",
    "EMPTY",
    "WILDCARD",
    "rotate_code_forward",
    "rotate_code_backward",
    "count_occupied",
    "pattern_sum",
    "reduce_code",
    "mirror_code",
    "element_site",
    "code_matches",
    "code_multiplicity",
    "encode_pattern",
    "decode_pattern",
    "match_masks",
    "Pattern",
]

OCCUPIED = "o"
EMPTY = "."
WILDCARD = "x"


@njit(cache=True)
def rotate_code_forward(code, p):
    """Rotate a code by one site forward: site ``i`` moves to ``(i+1) % p``."""
    mask = (1 << p) - 1
    return ((code << 1) | (code >> (p - 1))) & mask


@njit(cache=True)
def rotate_code_backward(code, p):
    """Rotate a code by one site backward: site ``i`` moves to ``(i-1) % p``."""
    return (code >> 1) | ((code & 1) << (p - 1))


@njit(cache=True)
def count_occupied(code, p):
    """Number of occupied sites of a code."""
    count = 0
    for ii in range(p):
        count += (code >> ii) & 1
    return count


@njit(cache=True)
def pattern_sum(code, p):
    """Sum of the occupied site indices, modulo ``p``."""
    total = 0
    for ii in range(p):
        if (code >> ii) & 1:
            total += ii
    return total % p


@njit(cache=True)
def reduce_code(code, p):
    """Rotate a code backward until its pattern sum vanishes.

    Parameters
    ----------
    code : int
        Configuration code with ``0 < k < p`` particles.
    p : int
        Prime number of ring sites.

    Returns
    -------
    tuple
        ``(primitive, shift)``: the rotation representative and the number of
        backward rotations applied. Rotating ``primitive`` forward ``shift``
        times gives back ``code``.
    """
    shift = 0
    while pattern_sum(code, p) != 0:
        code = rotate_code_backward(code, p)
        shift += 1
    return code, shift


@njit(cache=True)
def mirror_code(code, p):
    """Reflect a code around site 0: site ``i`` goes to ``(p-i) % p``."""
    mirrored = code & 1
    for ii in range(1, p):
        if (code >> ii) & 1:
            mirrored |= 1 << (p - ii)
    return mirrored


@njit(cache=True)
def element_site(code, nu, p):
    """Site of the ``nu``-th particle (1-based, counted from site 0), -1 if absent."""
    count = 0
    for ii in range(p):
        if (code >> ii) & 1:
            count += 1
            if count == nu:
                return ii
    return -1


@njit(cache=True)
def code_matches(code, atom_mask, hole_mask):
    """True if every site of ``atom_mask`` is occupied and every site of ``hole_mask`` empty."""
    return (code & atom_mask) == atom_mask and (code & hole_mask) == 0


@njit(cache=True)
def code_multiplicity(code, p, atom_mask, hole_mask):
    """Number of the ``p`` forward rotations of ``code`` matching the masks."""
    count = 0
    for _ in range(p):
        if code_matches(code, atom_mask, hole_mask):
            count += 1
        code = rotate_code_forward(code, p)
    return count


def _check_symbols(text, p, allowed):
    validate_parameters(pattern=text)
    if p is not None and len(text) != p:
        raise InvalidPatternError(
            f"Pattern '{text}' has {len(text)} sites, {p} expected"
        )
    for symbol in text:
        if symbol not in allowed:
            raise InvalidPatternError(f"Illegal symbol '{symbol}' in pattern '{text}'")


def encode_pattern(text, p=None):
    """Encode a definite graphical pattern (only ``o`` and ``.``) into a code.

    Args:
        text (str): graphical pattern.

        p (int, optional): expected number of sites. Defaults to ``len(text)``.

    Raises:
        InvalidPatternError: If the length differs from ``p`` or if the text
        contains a symbol other than ``o`` and ``.``.

    Returns:
        int: configuration code.
    """
    _check_symbols(text, p, (OCCUPIED, EMPTY))
    code = 0
    for ii, symbol in enumerate(text):
        if symbol == OCCUPIED:
            code |= 1 << ii
    return code


def decode_pattern(code, p):
    """Graphical string of a configuration code."""
    return "".join(OCCUPIED if (int(code) >> ii) & 1 else EMPTY for ii in range(p))


def match_masks(text, p=None):
    """Translate an averaging pattern (``o``, ``.``, ``x``) into two bit masks.

    Args:
        text (str): averaging pattern; ``x`` matches both particles and holes.

        p (int, optional): expected number of sites.

    Raises:
        InvalidPatternError: If the length or the symbols are wrong.

    Returns:
        tuple: ``(atom_mask, hole_mask)`` of sites that must be occupied/empty.
    """
    _check_symbols(text, p, (OCCUPIED, EMPTY, WILDCARD))
    atom_mask = 0
    hole_mask = 0
    for ii, symbol in enumerate(text):
        if symbol == OCCUPIED:
            atom_mask |= 1 << ii
        elif symbol == EMPTY:
            hole_mask |= 1 << ii
    return atom_mask, hole_mask


class Pattern:
    """Immutable configuration of particles on a ring of ``p`` sites."""

    __slots__ = ("_code", "_p")

    def __init__(self, code, p):
        validate_parameters(p=p)
        code = int(code)
        if code < 0 or code >> p:
            raise InvalidPatternError(f"Code {code} does not fit on {p} sites")
        self._code = code
        self._p = int(p)

    @classmethod
    def from_string(cls, text, p=None):
        code = encode_pattern(text, p)
        return cls(code, len(text))

    @property
    def code(self):
        return self._code

    @property
    def p(self):
        return self._p

    def to_string(self):
        return decode_pattern(self._code, self._p)

    def __str__(self):
        return self.to_string()

    def __repr__(self):
        return f"Pattern('{self.to_string()}')"

    def __eq__(self, other):
        if not isinstance(other, Pattern):
            return NotImplemented
        return self._code == other._code and self._p == other._p

    def __hash__(self):
        return hash((self._code, self._p))

    def rotate_forward(self, n=1):
        code = np.int64(self._code)
        for _ in range(n % self._p):
            code = rotate_code_forward(code, self._p)
        return Pattern(code, self._p)

    def rotate_backward(self, n=1):
        code = np.int64(self._code)
        for _ in range(n % self._p):
            code = rotate_code_backward(code, self._p)
        return Pattern(code, self._p)

    def count_occupied(self):
        return int(count_occupied(np.int64(self._code), self._p))

    def pattern_sum(self):
        return int(pattern_sum(np.int64(self._code), self._p))

    def reduce_to_primitive(self):
        """
        Return the rotation representative of the pattern and the shift.

        The representative is the rotation with a vanishing pattern sum. The
        shift counts the backward rotations applied, so that
        ``primitive.rotate_forward(shift) == self``.

        Raises:
            InvalidPatternError: If the ring is empty or completely filled.
        """
        k = self.count_occupied()
        if k == 0 or k == self._p:
            raise InvalidPatternError(f"No rotation representative for '{self}'")
        code, shift = reduce_code(np.int64(self._code), self._p)
        return Pattern(code, self._p), int(shift)

    def mirror(self):
        return Pattern(mirror_code(np.int64(self._code), self._p), self._p)

    def element(self, nu):
        return int(element_site(np.int64(self._code), nu, self._p))

    def matches(self, atom_mask, hole_mask):
        return bool(code_matches(np.int64(self._code), atom_mask, hole_mask))

    def multiplicity(self, atom_mask, hole_mask):
        return int(
            code_multiplicity(np.int64(self._code), self._p, atom_mask, hole_mask)
        )
