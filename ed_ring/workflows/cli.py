import sys
import argparse
import logging
from ed_ring.tools import EdRingError, MIN_PRECISION, MAX_PRECISION
from .diffusion import run_ring_diffusion

logger = logging.getLogger(__name__)

__all__ = ["build_parser", "parameters_from_args", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ed-ring",
        description="Exact diagonalization of particles diffusing on a ring of prime length.",
    )
    parser.add_argument("pattern", help="initial configuration, e.g. 'oo...' (o: atom, .: hole)")
    parser.add_argument("output", nargs="?", default=None, help="basename of .INF/.DAT files")
    # ----------------------------------------------------------------------------
    rates = parser.add_argument_group("rates")
    for label, text in (
        ("A", "free jump"),
        ("B", "jump leaving a neighbour behind"),
        ("C", "jump joining a neighbour"),
        ("D", "jump between neighbours"),
    ):
        rates.add_argument(f"-{label}", type=float, default=1.0, help=f"rate of the {text}")
    # ----------------------------------------------------------------------------
    spectrum = parser.add_argument_group("spectrum")
    spectrum.add_argument("-q", "--single-q", type=int, default=None, help="single momentum sector")
    spectrum.add_argument("-u", "--eigenvalues-only", action="store_true")
    spectrum.add_argument("-c", "--check-accuracy", action="store_true")
    spectrum.add_argument("-y", "--symmetrize", action="store_true", help="mirror-adapted q=0 eigenvectors")
    spectrum.add_argument("-l", "--load", default=None, help="read block data from LOAD.BLK")
    spectrum.add_argument("-s", "--save", default=None, help="write block data to SAVE.BLK")
    spectrum.add_argument("-R", "--results", default=None, help="pickle the run results to RESULTS")
    # ----------------------------------------------------------------------------
    dynamics = parser.add_argument_group("evolution")
    dynamics.add_argument("-n", "--no-evolution", action="store_true")
    dynamics.add_argument("-t", "--start", type=float, default=0.0)
    dynamics.add_argument("-T", "--stop", type=float, default=10.0)
    dynamics.add_argument("-S", "--steps", type=int, default=100)
    dynamics.add_argument("-L", "--log-scale", action="store_true")
    dynamics.add_argument("-v", "--deviation", action="store_true", help="deviations from equilibrium")
    avg = dynamics.add_mutually_exclusive_group()
    avg.add_argument("-1", "--one-site", dest="mode", action="store_const", const="one")
    avg.add_argument("-2", "--two-site", dest="mode", action="store_const", const="two")
    dynamics.add_argument(
        "-P", "--pattern", dest="patterns", action="append", default=[],
        help="averaging pattern over o, . and x (repeatable)",
    )
    dynamics.add_argument("-Q", "--equilibrium", action="store_true", help="equilibrium averages")
    dynamics.add_argument("--plot", action="store_true", help="save a plot of the averages")
    # ----------------------------------------------------------------------------
    report = parser.add_argument_group("report")
    report.add_argument("-p", "--primitives", action="store_true")
    report.add_argument("-o", "--rate-matrix", action="store_true")
    report.add_argument("-e", "--eigenvalues", action="store_true")
    report.add_argument("-E", "--eigenvectors", action="store_true")
    kind = report.add_mutually_exclusive_group()
    kind.add_argument("--left", dest="kind", action="store_const", const="left")
    kind.add_argument("--right", dest="kind", action="store_const", const="right")
    report.add_argument("-z", "--weight", action="store_true", help="eigenvector weight of the initial state")
    report.add_argument("-Z", "--q-contribution", action="store_true", help="contribution to <q>")
    digits_msg = f"digits of the results ({MIN_PRECISION}...{MAX_PRECISION})"
    report.add_argument("-d", "--digits", type=int, default=6, help=digits_msg)
    report.add_argument("-x", "--scientific", action="store_true")
    parser.add_argument("--log-level", default="INFO", help="logging level")
    return parser


def parameters_from_args(args) -> dict:
    """Translate the command line into the nested parameters of :func:`run_ring_diffusion`."""
    mode = "custom" if args.patterns else (args.mode or "one")
    return {
        "model": {
            "initial_state": args.pattern,
            "rates": {"A": args.A, "B": args.B, "C": args.C, "D": args.D},
        },
        "momentum": {"single_q": args.single_q},
        "spectrum": {
            "eigenvalues_only": args.eigenvalues_only,
            "check_accuracy": args.check_accuracy,
            "symmetrize_eigenvectors": args.symmetrize,
        },
        "dynamics": {
            "evolution": not args.no_evolution,
            "start": args.start,
            "stop": args.stop,
            "steps": args.steps,
            "log_scale": args.log_scale,
            "deviation": args.deviation,
        },
        "averages": {
            "mode": mode,
            "patterns": args.patterns,
            "equilibrium": args.equilibrium,
        },
        "report": {
            "show_primitives": args.primitives,
            "show_rate_matrix": args.rate_matrix,
            "show_eigenvalues": args.eigenvalues,
            "show_eigenvectors": args.eigenvectors,
            "eigenvector_kind": args.kind or "symmetric",
            "show_q_contribution": args.q_contribution,
            "show_weight": args.weight,
            "precision": args.digits,
            "fixed_format": not args.scientific,
        },
        "io": {
            "output": args.output,
            "load": args.load,
            "save": args.save,
            "results": args.results,
            "plot": args.plot,
        },
    }


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.getLogger("ed_ring").setLevel(args.log_level.upper())
    try:
        res = run_ring_diffusion(parameters_from_args(args))
    except EdRingError as err:
        logger.error(f"{type(err).__name__}: {err}")
        return 1
    for q, values in res["eigenvalues"].items():
        logger.info(f"q={q}: largest eigenvalue {values[-1]:.10g}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
