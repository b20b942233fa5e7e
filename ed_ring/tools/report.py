"""Human-readable report (``.INF``) of a ring-diffusion run.

Every helper returns a list of text lines; the workflow concatenates them
in the order of the run and writes them with :func:`write_report`. The
helpers only receive plain arrays and strings.
"""

import numpy as np
import logging
from .checks import validate_parameters, RATE_LABELS

logger = logging.getLogger(__name__)

__all__ = [
    "COEFFICIENT_WIDTH",
    "report_header",
    "coefficient_string",
    "primitive_listing",
    "rate_matrix_listing",
    "eigenvalue_listing",
    "accuracy_listing",
    "format_number",
    "write_report",
]

COEFFICIENT_WIDTH = 18
TITLE = "ed_ring - Diffusion on a Circle - Canonical Ensemble"


def report_header(initial_state, p, k, rates):
    rate_text = ", ".join(f"Rate{label} = {rate}" for label, rate in zip(RATE_LABELS, rates))
    return [
        TITLE,
        "",
        f"Evolution of the state {initial_state}  ({k} atoms on {p} sites)",
        rate_text,
        "",
    ]


def _signed_count(value):
    if value == 0:
        return ""
    sign = "+" if value > 0 else "-"
    return sign if abs(value) == 1 else f"{sign}{abs(value)}"


def coefficient_string(counts, width=COEFFICIENT_WIDTH):
    """
    Symbolic rate coefficient, e.g. ``[2, 0, 1, 0] -> "2A+C"``, centered in ``width``.

    Args:
        counts (sequence): one integer per jump type A, B, C, D.

        width (int, optional): field width.

    Returns:
        str: ``"0"`` if every count vanishes, otherwise the signed sum
        without a leading ``+``.
    """
    text = "".join(
        _signed_count(int(count)) + label
        for count, label in zip(counts, RATE_LABELS)
        if count != 0
    )
    if not text:
        text = "0"
    elif text.startswith("+"):
        text = text[1:]
    right = (width - len(text)) // 2
    left = width - len(text) - right
    return " " * left + text + " " * right


def primitive_listing(graphics, mirror, state, shift):
    """
    Listing of the primitive patterns with their mirror images.

    Palindromic patterns are marked with ``*``.
    """
    mirror = np.asarray(mirror)
    n_palindromic = int(np.sum(mirror == np.arange(len(mirror))))
    lines = [f"{len(graphics)} primitive patterns found, including {n_palindromic} palindromes:", ""]
    for ii, text in enumerate(graphics):
        image = "*" if mirror[ii] == ii else str(mirror[ii])
        lines.append(f"{ii} \t--- {text}  [{image}]")
    lines.append("")
    lines.append(f"(Initial Configuration [# of primitive|shift]: [{state}|{shift}])")
    lines.append("")
    return lines


def rate_matrix_listing(forward, backward, diagonal):
    """
    Symbolic rate coefficients; rows are destinations and columns sources.

    Args:
        forward (numpy.ndarray): ``(n, n, 4)`` increment counts.

        backward (numpy.ndarray): ``(n, n, 4)`` decrement counts.

        diagonal (numpy.ndarray): ``(n, 4)`` outflow counts.
    """
    lines = []
    for title, table in (("forward", forward), ("backward", backward)):
        lines.append(f"Rate coefficients for {title} jumps:")
        lines.append("")
        for row in table:
            lines.append("".join(coefficient_string(counts) for counts in row))
        lines.append("")
    lines.append("Diagonal (decay) rate coefficients:")
    lines.append("")
    lines.append("".join(coefficient_string(counts) for counts in diagonal))
    lines.append("")
    return lines


def format_number(value, precision):
    """Real or complex number with ``precision`` significant digits."""
    if np.iscomplexobj(value):
        real, imag = float(np.real(value)), float(np.imag(value))
        sign = "+" if imag >= 0 else "-"
        return f"{real:.{precision}g} {sign} {abs(imag):.{precision}g}i"
    return f"{float(value):.{precision}g}"


def eigenvalue_listing(
    q,
    eigenvalues,
    precision=14,
    vectors=None,
    graphics=None,
    parities=None,
    contributions=None,
    weights=None,
    reference=None,
):
    """
    Eigenvalues of one momentum sector, from the largest (#1) downward.

    Args:
        q (int): momentum index.

        eigenvalues (numpy.ndarray): ascending eigenvalues.

        precision (int, optional): significant digits.

        vectors (numpy.ndarray, optional): eigenvector rows to list.

        graphics (list, optional): graphical primitives labelling the entries.

        parities (list, optional): mirror symmetry tags (``q = 0``).

        contributions (numpy.ndarray, optional): contributions to ``<q>``.

        weights (numpy.ndarray, optional): weights in the initial configuration.

        reference (float, optional): one-particle diffusion eigenvalue.
    """
    validate_parameters(q=q, precision=precision)
    n_values = len(eigenvalues)
    lines = [f"Eigenvalues with momentum q = {q}:", ""]
    for ii in range(n_values - 1, -1, -1):
        line = f"Eigenvalue #{n_values - ii}: \t{format_number(eigenvalues[ii], precision)}"
        if parities is not None:
            line += f" \t[{parities[ii]}]"
        lines.append(line)
        if vectors is not None:
            for jj, entry in enumerate(vectors[ii]):
                label = graphics[jj] if graphics is not None else str(jj)
                lines.append(f"\t{jj} --- {label} \t{format_number(entry, precision)}")
        if contributions is not None:
            lines.append(
                f"\tContribution to <q={q}>: {format_number(contributions[ii], precision)}"
            )
        if weights is not None:
            lines.append(
                f"\tWeight in Initial Configuration: {format_number(weights[ii], precision)}"
            )
        if vectors is not None or contributions is not None or weights is not None:
            lines.append("")
    lines.append("")
    if reference is not None:
        lines.append(f"(One-particle diffusion: EV = {format_number(reference, precision)})")
        lines.append("")
    return lines


def accuracy_listing(q, accuracy):
    unitarity, reconstruction = accuracy
    return [
        f"Accuracy of diagonalization (momentum subspace q = {q}):",
        f"Schur norm of U^H U - 1: \t{unitarity:.6e}",
        f"Schur norm of U^H D U - A: \t{reconstruction:.6e}",
        "",
    ]


def write_report(filename, lines):
    """Write the report lines to ``filename`` (overwrites any existing file)."""
    validate_parameters(filename=filename)
    with open(filename, "w") as info:
        info.write("\n".join(lines) + "\n")
    logger.info(f"Report written to {filename}")
