"""Utilities for saving and loading run results, block data, and time-series tables.

This module provides the I/O helpers of the workflow:

- store Python dictionaries with ``pickle``,
- persist the packed spectral decomposition in a binary ``.BLK`` file and
  reload it after checking the parameter set,
- write the time series of pattern averages in a commented text table.
"""

import os
import pickle
import numpy as np
import logging
from .checks import validate_parameters
from .errors import InputValidationError, PersistedStateMismatchError

logger = logging.getLogger(__name__)

__all__ = [
    "BLOCK_SUFFIX",
    "save_dictionary",
    "load_dictionary",
    "block_filename",
    "save_block_data",
    "load_block_data",
    "format_data_value",
    "write_data_table",
    "load_data_table",
]

BLOCK_SUFFIX = ".BLK"
_INT = np.dtype("<i8")
_FLOAT = np.dtype("<f8")
_HEADER_SIZE = 2 * _INT.itemsize + 4 * _FLOAT.itemsize


def save_dictionary(dictionary, filename):
    """Serialize a Python dictionary to a pickle file.

    Parameters
    ----------
    dictionary : dict
        Dictionary to save.
    filename : str
        Output file path (typically with ``.pkl`` extension).

    Raises
    ------
    TypeError
        If ``dictionary`` or ``filename`` has an invalid type.
    """
    validate_parameters(dictionary=dictionary, filename=filename)
    with open(filename, "wb") as outp:  # Overwrites any existing file.
        pickle.dump(dictionary, outp, pickle.HIGHEST_PROTOCOL)


def load_dictionary(filename):
    """Load a dictionary from a pickle file written by :func:`save_dictionary`."""
    validate_parameters(filename=filename)
    with open(filename, "rb") as outp:
        return pickle.load(outp)


def block_filename(name):
    """Append the ``.BLK`` suffix unless already present."""
    validate_parameters(filename=name)
    return name if name.endswith(BLOCK_SUFFIX) else name + BLOCK_SUFFIX


def save_block_data(name, p, k, rates, eigenvalues, transforms=None):
    """Write the packed spectral decomposition to a binary block file.

    The record holds, in order and little-endian: ``p`` and ``k`` (int64),
    the four rates (float64), the packed eigenvalues and, if given, the
    packed transforms (float64).

    Parameters
    ----------
    name : str
        File name, with or without the ``.BLK`` suffix.
    p, k : int
        Number of sites and particles.
    rates : numpy.ndarray
        ``[RateA, RateB, RateC, RateD]``.
    eigenvalues : numpy.ndarray
        Packed eigenvalues of all the momentum sectors.
    transforms : numpy.ndarray, optional
        Packed transforms of all the momentum sectors.

    Returns
    -------
    str
        The path written.
    """
    filename = block_filename(name)
    rates = np.asarray(rates, dtype=np.float64)
    if rates.shape != (4,):
        raise ValueError(f"rates must hold 4 values, not {rates.shape}")
    with open(filename, "wb") as outp:
        outp.write(np.array([p, k], dtype=_INT).tobytes())
        outp.write(rates.astype(_FLOAT).tobytes())
        outp.write(np.asarray(eigenvalues, dtype=_FLOAT).tobytes())
        if transforms is not None:
            outp.write(np.asarray(transforms, dtype=_FLOAT).tobytes())
    logger.info(f"Block data saved to {filename}")
    return filename


def load_block_data(name, p, k, rates, n_primitives, require_transform=True):
    """Read a block file and check it against the current parameter set.

    Parameters
    ----------
    name : str
        File name, with or without the ``.BLK`` suffix.
    p, k : int
        Expected number of sites and particles.
    rates : numpy.ndarray
        Expected rates; they must match bit for bit.
    n_primitives : int
        Number of primitive patterns, fixing the record sizes.
    require_transform : bool, optional
        Fail if the file holds only eigenvalues.

    Returns
    -------
    tuple
        ``(eigenvalues, transforms)``; ``transforms`` is None if absent.

    Raises
    ------
    InputValidationError
        If the file cannot be opened.
    PersistedStateMismatchError
        If the stored parameters differ, or the record is truncated or incomplete.
    """
    filename = block_filename(name)
    if not os.path.isfile(filename):
        raise InputValidationError(f"Could not open block data file {filename}")
    with open(filename, "rb") as inp:
        data = inp.read()
    if len(data) < _HEADER_SIZE:
        raise PersistedStateMismatchError(f"{filename}: truncated header")
    stored_pk = np.frombuffer(data, dtype=_INT, count=2)
    stored_rates = np.frombuffer(data, dtype=_FLOAT, count=4, offset=2 * _INT.itemsize)
    rates = np.asarray(rates, dtype=np.float64)
    if int(stored_pk[0]) != p or int(stored_pk[1]) != k or np.any(stored_rates != rates):
        msg = (
            f"Incompatible parameter sets: stored p={stored_pk[0]}, k={stored_pk[1]}, "
            f"rates={stored_rates.tolist()}; current p={p}, k={k}, rates={rates.tolist()}"
        )
        raise PersistedStateMismatchError(msg)
    n_q = (p + 1) // 2
    n_values = n_q * n_primitives
    n_entries = n_q * n_primitives**2
    body = (len(data) - _HEADER_SIZE) // _FLOAT.itemsize
    if body == n_values:
        if require_transform:
            raise PersistedStateMismatchError(f"{filename}: no transformation matrices")
        transforms = None
    elif body == n_values + n_entries:
        transforms = np.frombuffer(
            data, dtype=_FLOAT, count=n_entries, offset=_HEADER_SIZE + n_values * 8
        ).copy()
    else:
        raise PersistedStateMismatchError(f"{filename}: unexpected size of block data")
    eigenvalues = np.frombuffer(data, dtype=_FLOAT, count=n_values, offset=_HEADER_SIZE).copy()
    logger.info(f"Block data read from {filename}")
    return eigenvalues, transforms


def format_data_value(value, precision, fixed_format=True, show_sign=False):
    """Format one table entry in fixed or scientific notation."""
    sign = "+" if show_sign else ""
    kind = "f" if fixed_format else "e"
    return f"{value:{sign}.{precision}{kind}}"


def write_data_table(
    filename,
    header_lines,
    times,
    values,
    precision=6,
    fixed_format=True,
    show_sign=False,
):
    """Write a time series: one row per time, first column the time itself.

    Parameters
    ----------
    filename : str
        Output path (overwritten).
    header_lines : list
        Comment lines, written with a leading ``#``.
    times : numpy.ndarray
        Times of the rows.
    values : numpy.ndarray
        Array ``(n_times, n_columns)``.
    precision : int, optional
        Digits after the decimal point (2...16).
    fixed_format : bool, optional
        Fixed-point (True) or mantissa-exponent (False) notation.
    show_sign : bool, optional
        Always print the sign of the values (deviations).
    """
    validate_parameters(filename=filename, precision=precision)
    if not isinstance(header_lines, list):
        raise TypeError(f"header_lines must be a LIST, not a {type(header_lines)}")
    with open(filename, "w") as outp:
        for line in header_lines:
            outp.write(f"# {line}\n")
        for time, row in zip(times, values):
            entries = [format_data_value(time, precision, fixed_format)]
            entries += [format_data_value(x, precision, fixed_format, show_sign) for x in row]
            outp.write(" \t".join(entries) + "\n")
    logger.info(f"Data written to {filename}")


def load_data_table(filename):
    """Read a table written by :func:`write_data_table` into a 2D array."""
    validate_parameters(filename=filename)
    return np.loadtxt(filename, comments="#", ndmin=2)
