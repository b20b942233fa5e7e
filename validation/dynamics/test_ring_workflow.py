import os
import tempfile
import numpy as np
from ed_ring.workflows import run_ring_diffusion
from ed_ring.workflows.cli import main as cli_main
from ed_ring.tools import (
    InputValidationError,
    InvalidPatternError,
    load_data_table,
    load_dictionary,
)


def _par(folder, **sections):
    par = {
        "model": {"initial_state": "oo...", "rates": {"A": 1, "B": 1, "C": 1, "D": 1}},
        "dynamics": {"start": 0.0, "stop": 5.0, "steps": 10},
        "averages": {"mode": "one", "equilibrium": True},
        "report": {"show_primitives": True, "show_eigenvalues": True},
        "io": {"output": os.path.join(folder, "ring")},
    }
    for key, values in sections.items():
        par.setdefault(key, {}).update(values)
    return par


def test_full_run():
    with tempfile.TemporaryDirectory() as folder:
        res = run_ring_diffusion(_par(folder, io={"plot": True}))
        if not np.allclose(res["averages"][0], [1, 1, 0, 0, 0], atol=1e-10):
            raise ValueError("workflow test: FAIL on the initial averages")
        if not np.allclose(res["equilibrium"], 0.4):
            raise ValueError("workflow test: FAIL on the equilibrium averages")
        if res["primitives"] != ["..oo.", ".o..o"] or len(res["times"]) != 11:
            raise ValueError("workflow test: FAIL on the run results")
        for suffix in [".INF", ".DAT", ".pdf"]:
            if not os.path.isfile(os.path.join(folder, "ring" + suffix)):
                raise ValueError(f"workflow test: FAIL, {suffix} file missing")
        table = load_data_table(os.path.join(folder, "ring.DAT"))
        with open(os.path.join(folder, "ring.INF")) as inp:
            report = inp.read()
    if table.shape != (11, 6) or not np.allclose(table[:, 1:], res["averages"], atol=1e-6):
        raise ValueError("workflow test: FAIL on the data file")
    for text in ["2 primitive patterns found", "Eigenvalues with momentum q = 2:", "[symmetric]"]:
        if text not in report:
            raise ValueError(f"workflow test: FAIL, '{text}' missing from the report")


def test_spectral_options():
    with tempfile.TemporaryDirectory() as folder:
        res = run_ring_diffusion(
            _par(
                folder,
                model={"initial_state": "oo.o..o"},
                spectrum={"check_accuracy": True, "symmetrize_eigenvectors": True},
                report={
                    "show_rate_matrix": True,
                    "show_eigenvectors": True,
                    "eigenvector_kind": "left",
                    "show_q_contribution": True,
                    "show_weight": True,
                    "precision": 10,
                },
                averages={"mode": "two"},
                dynamics={"deviation": True},
            )
        )
        with open(os.path.join(folder, "ring.INF")) as inp:
            report = inp.read()
    if res["averages"].shape != (11, 21) or set(res["accuracy"]) != {0, 1, 2, 3}:
        raise ValueError("workflow test: FAIL on the results with spectral options")
    for text in ["Rate coefficients for forward jumps", "Contribution to <q=1>", "Schur norm"]:
        if text not in report:
            raise ValueError(f"workflow test: FAIL, '{text}' missing from the report")


def test_eigenvalues_only():
    with tempfile.TemporaryDirectory() as folder:
        res = run_ring_diffusion(
            _par(folder, spectrum={"eigenvalues_only": True}, report={"show_eigenvalues": False})
        )
        if os.path.isfile(os.path.join(folder, "ring.DAT")):
            raise ValueError("workflow test: FAIL, evolution written without eigenvectors")
        with open(os.path.join(folder, "ring.INF")) as inp:
            report = inp.read()
    if res["averages"] is not None or "Eigenvalue #1" not in report:
        raise ValueError("workflow test: FAIL on an eigenvalue-only run")
    single = run_ring_diffusion(
        {"model": {"initial_state": "ooo...o"}, "momentum": {"single_q": 2}}
    )
    if list(single["eigenvalues"]) != [2] or single["averages"] is not None:
        raise ValueError("workflow test: FAIL on a single momentum run")


def test_save_and_load():
    with tempfile.TemporaryDirectory() as folder:
        blocks = os.path.join(folder, "blocks")
        par = _par(folder, model={"initial_state": "o.oo.o.o..."}, io={"save": blocks})
        saved = run_ring_diffusion(par)
        par = _par(folder, model={"initial_state": "o.oo.o.o..."}, io={"load": blocks})
        loaded = run_ring_diffusion(par)
        par["model"]["rates"] = {"A": 2.0}
        try:
            run_ring_diffusion(par)
        except InputValidationError:
            raise ValueError("workflow test: FAIL, wrong error for mismatched block data")
        except ValueError:
            pass
    if not np.array_equal(saved["averages"], loaded["averages"]):
        raise ValueError("workflow test: FAIL, reloaded spectrum changed the evolution")


def test_saved_results():
    with tempfile.TemporaryDirectory() as folder:
        results = os.path.join(folder, "ring.pkl")
        res = run_ring_diffusion(_par(folder, io={"results": results}))
        stored = load_dictionary(results)
        output = os.path.join(folder, "cli")
        if cli_main(["oo.o...", output, "-R", output + ".pkl", "-S", "5"]) != 0:
            raise ValueError("workflow test: FAIL on a command line run with saved results")
        from_cli = load_dictionary(output + ".pkl")
    if not np.array_equal(stored["averages"], res["averages"]):
        raise ValueError("workflow test: FAIL, stored averages differ from the run")
    if stored["primitives"] != res["primitives"] or stored["report"] != res["report"]:
        raise ValueError("workflow test: FAIL on the stored run results")
    if from_cli["p"] != 7 or from_cli["k"] != 3 or from_cli["averages"].shape != (6, 7):
        raise ValueError("workflow test: FAIL on the results stored from the command line")


def test_rejected_runs():
    bad = [
        ({"model": {"initial_state": "oo.."}}, InputValidationError),
        ({"model": {"initial_state": "oo.x."}}, InvalidPatternError),
        ({"model": {"initial_state": "....."}}, InputValidationError),
        (
            {
                "model": {"initial_state": "oo..."},
                "spectrum": {"eigenvalues_only": True},
                "report": {"show_weight": True},
            },
            InputValidationError,
        ),
        (
            {"model": {"initial_state": "oo..."}, "momentum": {"single_q": 1}, "io": {"save": "x"}},
            InputValidationError,
        ),
        (
            {"model": {"initial_state": "oo..."}, "averages": {"mode": "custom", "patterns": ["ox"]}},
            InvalidPatternError,
        ),
        (
            {"model": {"initial_state": "oo..."}, "dynamics": {"start": 1.0, "stop": 0.5}},
            InputValidationError,
        ),
    ]
    for par, error in bad:
        try:
            run_ring_diffusion(par)
        except error:
            continue
        raise ValueError(f"workflow test: FAIL, {par} did not raise {error.__name__}")


def test_command_line():
    with tempfile.TemporaryDirectory() as folder:
        output = os.path.join(folder, "cli")
        args = ["oo...", output, "-p", "-e", "-S", "20", "-T", "4", "-P", "oo...", "-P", "oxxxx"]
        if cli_main(args) != 0:
            raise ValueError("workflow test: FAIL on a command line run")
        table = load_data_table(output + ".DAT")
        if table.shape != (21, 3) or abs(table[0, 1] - 1) > 1e-6:
            raise ValueError("workflow test: FAIL on the command line data file")
        if cli_main(["oo..", output]) != 1 or cli_main(["oo...", "-u", "-E"]) != 1:
            raise ValueError("workflow test: FAIL, invalid command line accepted")


def main():
    test_full_run()
    test_spectral_options()
    test_eigenvalues_only()
    test_save_and_load()
    test_saved_results()
    test_rejected_runs()
    test_command_line()
    print("Ring workflow test: PASS")


if __name__ == "__main__":
    main()
