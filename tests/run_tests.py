#!/usr/bin/env python3
"""Test runner for the context storage unit tests."""

import logging
import sys
import unittest
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def run_unit_tests(pattern: str = "test_*.py") -> bool:
    """Run the unit tests.

    pytest-style test functions are only collected by pytest; this runner
    picks up the unittest.TestCase classes.
    """
    logging.basicConfig(level=logging.CRITICAL)

    loader = unittest.TestLoader()
    unit_dir = str(Path(__file__).parent / "unit")
    suite = loader.discover(unit_dir, pattern=pattern)

    runner = unittest.TextTestRunner(verbosity=2, stream=sys.stdout)
    result = runner.run(suite)

    return result.wasSuccessful()


def run_coverage_tests() -> bool:
    """Run tests with coverage analysis (if coverage is available)."""
    try:
        import coverage  # noqa: PLC0415
    except ImportError:
        return run_unit_tests()

    cov = coverage.Coverage(source=["context_storage", "clients", "db", "filelock_util"])
    cov.start()

    success = run_unit_tests()

    cov.stop()
    cov.save()
    cov.report()

    return success


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run context storage tests")
    parser.add_argument("--pattern", default="test_*.py", help="Test file pattern")
    parser.add_argument("--coverage", action="store_true", help="Run tests with coverage analysis")
    args = parser.parse_args()

    success = run_coverage_tests() if args.coverage else run_unit_tests(args.pattern)

    sys.exit(0 if success else 1)
