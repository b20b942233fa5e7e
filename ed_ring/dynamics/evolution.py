"""Time evolution of an initial configuration from the momentum-sector spectra.

The probability of the configuration obtained by rotating primitive ``i``
forward ``nu`` times is

    P(nu, i; t) = P_0(i; t) + 2 Re sum_{q=1}^{(p-1)/2} omega^(q nu) P_q(i; t),

with ``P_q(i; t) = sqrt(pi_i / p) sum_l conj(Z_q[l, i]) c_q[l] exp(lambda_l t)``
and the initial coefficients ``c_q[l] = omega^(-q s) Z_q[l, S] / sqrt(p pi_S)``
for an initial configuration equal to primitive ``S`` rotated by ``s``.
The stationary component of the ``q = 0`` sector is kept constant for the
averages, and dropped for the deviations from equilibrium.
"""

import numpy as np
from numba import njit
import logging
from ed_ring.tools import (
    get_time,
    validate_parameters,
    check_time_window,
    InputValidationError,
    ResourceExhaustedError,
)
from ed_ring.modeling import (
    match_masks,
    rotate_code_forward,
    code_matches,
    code_multiplicity,
)

logger = logging.getLogger(__name__)

__all__ = [
    "MAX_AVERAGE_PATTERNS",
    "time_grid",
    "one_site_patterns",
    "two_site_patterns",
    "rotation_match_table",
    "initial_coefficients",
    "equilibrium_average",
    "Evolver",
]

MAX_AVERAGE_PATTERNS = 512


def time_grid(start, stop, steps, log_scale=False):
    """
    Times of the evolution: ``steps + 1`` points from ``start`` to ``stop``.

    Args:
        start (float): initial time (positive for a logarithmic scale).

        stop (float): final time.

        steps (int): number of intervals.

        log_scale (bool, optional): geometric instead of arithmetic spacing.

    Returns:
        numpy.ndarray: the times.
    """
    validate_parameters(steps=steps, log_scale=log_scale)
    check_time_window(start, stop, log_scale)
    if steps < 1:
        raise InputValidationError(f"steps must be positive, not {steps}")
    if log_scale:
        factor = (stop / start) ** (1.0 / steps)
        return start * factor ** np.arange(steps + 1)
    step = (stop - start) / steps
    return start + step * np.arange(steps + 1)


def one_site_patterns(p):
    """Averaging patterns ``x..xox..x`` of every single site."""
    return ["x" * ii + "o" + "x" * (p - ii - 1) for ii in range(p)]


def two_site_patterns(p):
    """Averaging patterns of every pair of sites ``i < j``."""
    patterns = []
    for ii in range(p - 1):
        for jj in range(p - 1 - ii):
            patterns.append("x" * ii + "o" + "x" * jj + "o" + "x" * (p - ii - jj - 2))
    return patterns


@njit(cache=True)
def rotation_match_table(codes, p, atom_mask, hole_mask):
    """Boolean table ``[nu, i]``: primitive ``i`` rotated ``nu`` times forward matches."""
    table = np.zeros((p, len(codes)), dtype=np.bool_)
    for ii in range(len(codes)):
        code = codes[ii]
        for nu in range(p):
            table[nu, ii] = code_matches(code, atom_mask, hole_mask)
            code = rotate_code_forward(code, p)
    return table


def initial_coefficients(q, p, transform, weights, state, shift):
    """
    Projection of a configuration on the eigenvectors of sector ``q``.

    Args:
        q (int): momentum index.

        p (int): number of sites.

        transform (numpy.ndarray): eigenvector rows ``Z`` of the sector.

        weights (numpy.ndarray): equilibrium weights.

        state (int): primitive index of the configuration.

        shift (int): forward rotations from the primitive to the configuration.

    Returns:
        numpy.ndarray: complex coefficients ``c_q[l]``.
    """
    phase = np.exp(-2j * np.pi * ((q * shift) % p) / p)
    return phase * transform[:, state] / np.sqrt(p * weights[state])


def equilibrium_average(basis, weights, pattern):
    """Stationary average ``sum_i pi_i * multiplicity_i`` of a pattern."""
    atom_mask, hole_mask = match_masks(pattern, basis.p)
    total = 0.0
    for ii, code in enumerate(basis.codes):
        total += weights[ii] * code_multiplicity(code, basis.p, atom_mask, hole_mask)
    return total


class Evolver:
    """
    Evolution of one initial configuration on the full set of momentum sectors.

    Args:
        spectrum (SpectralDecomposition): complete decomposition with transforms.

        basis (PrimitiveBasis): primitive patterns.

        weights (numpy.ndarray): equilibrium weights.

        initial_state (str or Pattern): initial configuration.

    Raises:
        InputValidationError: If a sector or the eigenvectors are missing.
    """

    def __init__(self, spectrum, basis, weights, initial_state):
        if not spectrum.is_complete:
            msg = "the evolution requires all the momentum sectors"
            raise InputValidationError(msg)
        if not spectrum.has_transform:
            raise InputValidationError("the evolution requires the eigenvectors")
        self.spectrum = spectrum
        self.basis = basis
        self.weights = weights
        self.p = basis.p
        self.state, self.shift = basis.locate(initial_state)
        logger.info(f"Initial configuration [state|shift]: [{self.state}|{self.shift}]")
        self.q_values = spectrum.q_values
        self.stationary_index = spectrum[0].stationary_index
        self._prepare()

    def _prepare(self):
        p = self.p
        omega_q = np.exp(2j * np.pi * np.asarray(self.q_values) / p)
        scale = np.sqrt(self.weights / p)
        self.coefficients = []
        self.eigenvalues = []
        self.propagators = []
        for q in self.q_values:
            sector = self.spectrum[q]
            self.coefficients.append(
                initial_coefficients(
                    q, p, sector.transform, self.weights, self.state, self.shift
                )
            )
            self.eigenvalues.append(sector.eigenvalues)
            # Row l maps the coefficient l onto the primitives
            self.propagators.append(np.conj(sector.transform) * scale[None, :])
        # omega^(q nu), doubled for the conjugate sectors
        rotations = np.arange(p)
        multiplicity = np.where(np.asarray(self.q_values) == 0, 1.0, 2.0)
        self.fourier = multiplicity[None, :] * omega_q[None, :] ** rotations[:, None]

    def amplitudes(self, time, deviation=False):
        """
        Momentum amplitudes ``P_q(i; t)``.

        Returns:
            numpy.ndarray: complex array ``(n_q, n_primitives)``.
        """
        amplitudes = np.zeros((len(self.q_values), self.basis.n_primitives), dtype=np.complex128)
        for iq, q in enumerate(self.q_values):
            decay = np.exp(self.eigenvalues[iq] * time)
            if q == 0:
                decay[self.stationary_index] = 0.0 if deviation else 1.0
            amplitudes[iq] = (self.coefficients[iq] * decay) @ self.propagators[iq]
        return amplitudes

    def probability_grid(self, time, deviation=False):
        """
        Probability of every configuration at ``time``.

        Returns:
            numpy.ndarray: real array ``[nu, i]``, the configuration being the
            primitive ``i`` rotated forward ``nu`` times.
        """
        return np.real(self.fourier @ self.amplitudes(time, deviation))

    def match_tables(self, patterns):
        """Rotation match tables of a list of averaging patterns."""
        validate_parameters(patterns=patterns)
        if len(patterns) > MAX_AVERAGE_PATTERNS:
            msg = f"{len(patterns)} averaging patterns exceed the limit of {MAX_AVERAGE_PATTERNS}"
            raise ResourceExhaustedError(msg)
        tables = []
        for text in patterns:
            atom_mask, hole_mask = match_masks(text, self.p)
            tables.append(rotation_match_table(self.basis.codes, self.p, atom_mask, hole_mask))
        return np.array(tables)

    def averages(self, time, tables, deviation=False):
        """Averages of the patterns whose match tables are given, at one time."""
        grid = self.probability_grid(time, deviation)
        values = np.array([np.sum(grid[table]) for table in tables])
        if not deviation:
            values = np.maximum(values, 0.0)
        return values

    @get_time
    def evolve(self, times, patterns, deviation=False):
        """
        Pattern averages along a time grid.

        Args:
            times (numpy.ndarray): evolution times.

            patterns (list): averaging patterns over ``o``, ``.`` and ``x``.

            deviation (bool, optional): report deviations from equilibrium.

        Returns:
            numpy.ndarray: array ``(n_times, n_patterns)``.
        """
        validate_parameters(deviation=deviation)
        tables = self.match_tables(patterns)
        logger.info("Calculating evolution of the initial state")
        results = np.zeros((len(times), len(patterns)), dtype=np.float64)
        for it, time in enumerate(times):
            results[it] = self.averages(time, tables, deviation)
        return results

    def equilibrium_average(self, pattern):
        return equilibrium_average(self.basis, self.weights, pattern)
