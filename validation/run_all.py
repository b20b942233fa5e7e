import os
import sys
import argparse
import subprocess
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

SUITES = ("modeling", "algorithms", "dynamics")


def set_threads_env(n: int | None) -> None:
    """
    Set thread env vars for NUMBA/OMP/MKL/OPENBLAS.

    If n is None: do nothing (use whatever the system/default chooses).
    """
    if n is None:
        return
    t = str(int(n))
    for name in ("NUMBA_NUM_THREADS", "OMP_NUM_THREADS", "MKL_NUM_THREADS", "OPENBLAS_NUM_THREADS"):
        os.environ[name] = t


def discover_test_files(root: Path, suites=SUITES, match: str | None = None) -> list[Path]:
    """
    Collect the test*.py files of the requested suites (validation/<suite>/),
    optionally keeping only the file names containing ``match``.
    """
    tests: list[Path] = []
    for suite in suites:
        folder = root / suite
        if not folder.is_dir():
            logger.info(f"Suite not found: {folder}")
            continue
        tests.extend(sorted(folder.glob("test*.py")))
    if match is not None:
        tests = [path for path in tests if match in path.name]
    return tests


def run_one_test(test_path: Path, env: dict, use_pytest: bool = False) -> int:
    """Run one test file in its own interpreter; return its exit code."""
    logger.info(f"Running {test_path.relative_to(test_path.parents[1])} ===")
    if use_pytest:
        command = [sys.executable, "-m", "pytest", "-q", str(test_path)]
    else:
        command = [sys.executable, str(test_path)]
    r = subprocess.run(command, env=env)
    return r.returncode


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    # ----------------------------------------------------------------------------
    parser = argparse.ArgumentParser(description="Run the ed_ring validation tests.")
    threads_msg = "Threads for NUMBA/OMP/MKL/OPENBLAS. Default: system/default."
    parser.add_argument("--threads", type=int, default=None, help=threads_msg)
    suite_msg = f"Run only one suite {SUITES}. If omitted, run all."
    parser.add_argument("--suite", type=str, default=None, choices=SUITES, help=suite_msg)
    parser.add_argument("--match", type=str, default=None, help="substring of the test file names")
    parser.add_argument("--pytest", action="store_true", help="run each file through pytest")
    args = parser.parse_args()
    # ----------------------------------------------------------------------------
    # Child processes read the thread settings at import time
    set_threads_env(args.threads)
    env = os.environ.copy()
    root = Path(__file__).resolve().parent
    suites = SUITES if args.suite is None else (args.suite,)
    tests = discover_test_files(root, suites, args.match)
    if not tests:
        logger.info("No validation tests found.")
        return 2
    failed = [path for path in tests if run_one_test(path, env, args.pytest) != 0]
    # ----------------------------------------------------------------------------
    total = len(tests)
    logger.info("====================================================")
    logger.info(" Validation Summary ")
    logger.info("====================================================")
    if failed:
        for path in failed:
            logger.info(f"FAILED: {path.parent.name}/{path.name}")
        logger.info(f"FAILED: {len(failed)}/{total} tests")
        return 1
    logger.info(f"ALL PASSED: {total} tests")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
