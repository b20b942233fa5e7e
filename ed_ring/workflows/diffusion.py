from time import perf_counter
import numpy as np
import logging
from ed_ring.tools import (
    check_ring_size,
    check_particle_number,
    check_rates,
    check_precision,
    check_option_compatibility,
    InputValidationError,
    ResourceExhaustedError,
    save_block_data,
    load_block_data,
    save_dictionary,
    write_data_table,
    plot_averages,
    report_header,
    primitive_listing,
    rate_matrix_listing,
    eigenvalue_listing,
    accuracy_listing,
    write_report,
)
from ed_ring.modeling import (
    Pattern,
    PrimitiveBasis,
    MAX_PRIMITIVES,
    build_rate_tables,
    equilibrium_weights,
    build_momentum_block,
    match_masks,
)
from ed_ring.algorithms import diagonalization_accuracy
from ed_ring.dynamics import (
    MAX_AVERAGE_PATTERNS,
    EIGENVECTOR_KINDS,
    SpectralDecomposition,
    compute_spectrum,
    eigenvector_rows,
    mirror_parity,
    momentum_contribution,
    one_particle_eigenvalue,
    time_grid,
    one_site_patterns,
    two_site_patterns,
    initial_coefficients,
    equilibrium_average,
    Evolver,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_PARAMETERS",
    "ring_build_model",
    "ring_averaging_patterns",
    "ring_spectrum",
    "ring_eigen_report",
    "run_ring_diffusion",
]

DEFAULT_PARAMETERS = {
    "model": {"initial_state": None, "rates": {}},
    "momentum": {"single_q": None},
    "spectrum": {
        "eigenvalues_only": False,
        "check_accuracy": False,
        "symmetrize_eigenvectors": False,
        "max_primitives": MAX_PRIMITIVES,
    },
    "dynamics": {
        "evolution": True,
        "start": 0.0,
        "stop": 10.0,
        "steps": 100,
        "log_scale": False,
        "deviation": False,
    },
    "averages": {"mode": "one", "patterns": [], "equilibrium": False},
    "report": {
        "show_primitives": False,
        "show_rate_matrix": False,
        "show_eigenvalues": False,
        "show_eigenvectors": False,
        "eigenvector_kind": "symmetric",
        "show_q_contribution": False,
        "show_weight": False,
        "precision": 6,
        "fixed_format": True,
    },
    "io": {"output": None, "load": None, "save": None, "results": None, "plot": False},
}


def _get(d, path, default=None):
    cur = d
    for k in path:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _par(par, section, key):
    return _get(par, [section, key], DEFAULT_PARAMETERS[section][key])


def _options(par):
    # Flat view of the switches that interact with each other
    options = {
        "single_q": _par(par, "momentum", "single_q"),
        "load": _par(par, "io", "load"),
        "save": _par(par, "io", "save"),
    }
    for key in DEFAULT_PARAMETERS["spectrum"]:
        options[key] = _par(par, "spectrum", key)
    for key in DEFAULT_PARAMETERS["report"]:
        options[key] = _par(par, "report", key)
    options["evolution"] = _par(par, "dynamics", "evolution")
    check_option_compatibility(options)
    if options["eigenvalues_only"]:
        options["show_eigenvalues"] = True
        if options["evolution"]:
            logger.info("eigenvalues_only: evolution switched off")
        options["evolution"] = False
    if options["single_q"] is not None and options["evolution"]:
        logger.info("single_q: evolution switched off")
        options["evolution"] = False
    if options["eigenvector_kind"] not in EIGENVECTOR_KINDS:
        msg = f"eigenvector_kind must be in {EIGENVECTOR_KINDS}, not {options['eigenvector_kind']}"
        raise InputValidationError(msg)
    check_precision(options["precision"])
    return options


def ring_build_model(par):
    """
    Validate the initial configuration and build the primitive basis.

    Returns:
        tuple: ``(pattern, basis, tables, rates, weights)``.
    """
    text = _par(par, "model", "initial_state")
    if not isinstance(text, str):
        raise TypeError(f"initial_state should be a STRING, not {type(text)}")
    check_ring_size(len(text))
    pattern = Pattern.from_string(text)
    p = pattern.p
    k = pattern.count_occupied()
    check_particle_number(p, k)
    rates = check_rates(_par(par, "model", "rates"))
    logger.info(f"Ring of {p} sites with {k} particles, rates {rates.tolist()}")
    basis = PrimitiveBasis(p, k, _par(par, "spectrum", "max_primitives"))
    tables = build_rate_tables(basis)
    weights = equilibrium_weights(basis, rates)
    return pattern, basis, tables, rates, weights


def ring_averaging_patterns(par, p):
    """
    Patterns whose averages are followed in time.

    ``mode`` selects all single sites (``"one"``), all pairs of sites
    (``"two"``) or the list ``averages.patterns`` (``"custom"``).
    """
    mode = _par(par, "averages", "mode")
    if mode == "one":
        patterns = one_site_patterns(p)
    elif mode == "two":
        patterns = two_site_patterns(p)
    elif mode == "custom":
        patterns = list(_par(par, "averages", "patterns"))
        if not patterns:
            raise InputValidationError("custom averages require at least one pattern")
    else:
        raise InputValidationError(f"averages mode must be one, two or custom, not {mode}")
    if len(patterns) > MAX_AVERAGE_PATTERNS:
        msg = f"{len(patterns)} averaging patterns exceed the limit of {MAX_AVERAGE_PATTERNS}"
        raise ResourceExhaustedError(msg)
    for text in patterns:
        match_masks(text, p)
    return patterns


def ring_spectrum(par, options, basis, tables, rates, weights):
    """Compute the momentum spectra, or read them from a block file."""
    load = options["load"]
    if load is not None:
        eigenvalues, transforms = load_block_data(
            load, basis.p, basis.k, rates, basis.n_primitives, require_transform=True
        )
        spectrum = SpectralDecomposition.from_packed(
            basis.p, basis.k, rates, eigenvalues, transforms, basis.mirror
        )
    else:
        single_q = options["single_q"]
        spectrum = compute_spectrum(
            basis,
            tables,
            weights,
            rates,
            q_values=None if single_q is None else [single_q],
            eigenvalues_only=options["eigenvalues_only"],
            symmetrize_eigenvectors=options["symmetrize_eigenvectors"],
            check_accuracy=options["check_accuracy"],
        )
    if options["check_accuracy"]:
        for q in spectrum.q_values:
            sector = spectrum[q]
            if sector.accuracy is None:
                block = build_momentum_block(q, tables, weights, rates)
                sector.accuracy = diagonalization_accuracy(
                    block, sector.eigenvalues, sector.transform
                )
    if options["save"] is not None:
        save_block_data(options["save"], basis.p, basis.k, rates, *spectrum.pack())
    return spectrum


def ring_eigen_report(options, spectrum, basis, weights, rates, state, shift):
    """Report lines of the eigenvalues and of the requested eigenvector data."""
    p = basis.p
    precision = options["precision"]
    graphics = [basis.graphics(ii) for ii in range(basis.n_primitives)]
    listing = (
        options["show_eigenvalues"]
        or options["show_eigenvectors"]
        or options["show_q_contribution"]
        or options["show_weight"]
    )
    lines = []
    for q in spectrum.q_values:
        sector = spectrum[q]
        if listing:
            vectors = parities = contributions = coefficients = None
            if sector.transform is not None:
                if q == 0:
                    parities = [
                        mirror_parity(row, basis.mirror)
                        for row in eigenvector_rows(sector.transform, weights, p)
                    ]
                if options["show_eigenvectors"]:
                    vectors = eigenvector_rows(
                        sector.transform, weights, p, options["eigenvector_kind"]
                    )
                if options["show_q_contribution"]:
                    contributions = momentum_contribution(q, sector.transform, basis, weights)
                if options["show_weight"]:
                    coefficients = initial_coefficients(
                        q, p, sector.transform, weights, state, shift
                    )
            lines += eigenvalue_listing(
                q,
                sector.eigenvalues,
                precision,
                vectors=vectors,
                graphics=graphics,
                parities=parities,
                contributions=contributions,
                weights=coefficients,
                reference=one_particle_eigenvalue(q, p, rates[0]),
            )
        if sector.accuracy is not None:
            lines += accuracy_listing(q, sector.accuracy)
    return lines


def _data_header(pattern, basis, rates, patterns, equilibrium, options, deviation):
    header = report_header(pattern.to_string(), basis.p, basis.k, rates)
    header = [line for line in header if line]
    quantity = "Deviation from equilibrium" if deviation else "Average"
    header.append(f"Columns: t, {quantity} of " + ", ".join(patterns))
    if equilibrium is not None:
        for text, value in zip(patterns, equilibrium):
            header.append(
                f"Equilibrium <{text}> = {value:.{options['precision']}f}"
            )
    return header


def run_ring_diffusion(par):
    """
    Full run: spectra of the momentum sectors, report and time evolution.

    Args:
        par (dict): nested parameters, see :data:`DEFAULT_PARAMETERS`.

    Returns:
        dict: results of the run.
    """
    start_time = perf_counter()
    options = _options(par)
    pattern, basis, tables, rates, weights = ring_build_model(par)
    state, shift = basis.locate(pattern)
    evolution = options["evolution"]
    deviation = _par(par, "dynamics", "deviation")
    patterns = []
    times = None
    if evolution:
        patterns = ring_averaging_patterns(par, basis.p)
        times = time_grid(
            _par(par, "dynamics", "start"),
            _par(par, "dynamics", "stop"),
            _par(par, "dynamics", "steps"),
            _par(par, "dynamics", "log_scale"),
        )
    # report
    lines = report_header(pattern.to_string(), basis.p, basis.k, rates)
    graphics = [basis.graphics(ii) for ii in range(basis.n_primitives)]
    if options["show_primitives"]:
        lines += primitive_listing(graphics, basis.mirror, state, shift)
    if options["show_rate_matrix"]:
        lines += rate_matrix_listing(tables.forward, tables.backward, tables.diagonal)
    # spectra
    spectrum = ring_spectrum(par, options, basis, tables, rates, weights)
    lines += ring_eigen_report(options, spectrum, basis, weights, rates, state, shift)
    res = {
        "p": basis.p,
        "k": basis.k,
        "rates": rates,
        "primitives": graphics,
        "mirror": np.array(basis.mirror),
        "weights": weights,
        "state": state,
        "shift": shift,
        "eigenvalues": {q: spectrum[q].eigenvalues for q in spectrum.q_values},
        "accuracy": {q: spectrum[q].accuracy for q in spectrum.q_values},
        "patterns": patterns,
        "times": times,
        "averages": None,
        "equilibrium": None,
    }
    if _par(par, "averages", "equilibrium"):
        targets = patterns if patterns else ring_averaging_patterns(par, basis.p)
        res["equilibrium"] = np.array(
            [equilibrium_average(basis, weights, text) for text in targets]
        )
    # evolution
    if evolution:
        evolver = Evolver(spectrum, basis, weights, pattern)
        res["averages"] = evolver.evolve(times, patterns, deviation)
    # outputs
    output = _par(par, "io", "output")
    if output is not None:
        write_report(f"{output}.INF", lines)
        if evolution:
            header = _data_header(
                pattern, basis, rates, patterns, res["equilibrium"], options, deviation
            )
            write_data_table(
                f"{output}.DAT",
                header,
                times,
                res["averages"],
                precision=options["precision"],
                fixed_format=options["fixed_format"],
                show_sign=deviation,
            )
            if _par(par, "io", "plot"):
                plot_averages(
                    f"{output}.pdf",
                    times,
                    res["averages"],
                    patterns,
                    log_scale=_par(par, "dynamics", "log_scale"),
                    deviation=deviation,
                    equilibrium=res["equilibrium"],
                )
    res["report"] = lines
    end_time = perf_counter()
    tot_time = end_time - start_time
    res["total_time"] = tot_time
    results = _par(par, "io", "results")
    if results is not None:
        save_dictionary(res, results)
        logger.info(f"Results saved in {results}")
    logger.info(f"TIME SIMS {tot_time:.5f}")
    return res
