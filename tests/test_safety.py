"""Safety tests: the suite must never write to the working tree.

Guarded directories:
- ./data (shipped YAML config, generated reports)
- ./db (the default SQLite database)

Every test gets its database from the tmp_path based fixtures in conftest.
"""

import hashlib
from pathlib import Path

import pytest

GUARDED_DIRS = ("data", "db")


def _fingerprint(path: Path) -> str | None:
    """Hash of relative paths, sizes and mtimes under `path`; None if missing."""
    if not path.exists():
        return None

    hasher = hashlib.sha256()
    for entry in sorted(p for p in path.rglob("*") if p.is_file()):
        stat = entry.stat()
        hasher.update(str(entry.relative_to(path)).encode())
        hasher.update(f"{stat.st_size}:{int(stat.st_mtime)}".encode())
    return hasher.hexdigest()


@pytest.fixture(scope="module")
def snapshot() -> dict[str, str | None]:
    """Fingerprints taken when this module starts."""
    return {name: _fingerprint(Path(name)) for name in GUARDED_DIRS}


@pytest.mark.parametrize("name", GUARDED_DIRS)
def test_directory_untouched(snapshot, name):
    before = snapshot[name]
    after = _fingerprint(Path(name))

    if before is None and after is not None:
        pytest.fail(f"./{name} was created during the test run; use tmp_path fixtures")
    if before != after:
        pytest.fail(f"./{name} was modified during the test run; use tmp_path fixtures")


class TestTestIsolation:
    """Static checks over the phase test modules."""

    def test_phase_tests_use_temp_fixtures(self):
        test_files = sorted(Path("tests").glob("f*/test_*.py"))
        assert test_files, "No phase test files found"

        violations = []
        for test_file in test_files:
            content = test_file.read_text()
            # No arguments means the default database path
            if "init_db()" in content:
                violations.append(f"{test_file}: calls init_db() without a temp path")
            if "create_app()" in content:
                violations.append(f"{test_file}: builds the app against the default database")

        if violations:
            pytest.fail("Test files may not be isolated:\n" + "\n".join(f"  - {v}" for v in violations))

    def test_cli_tests_pass_db_option(self):
        """Every CLI invocation that opens a database names a temp file."""
        for test_file in Path("tests").glob("f*/test_cli*.py"):
            for line in test_file.read_text().splitlines():
                if "runner.invoke(app, [" in line and "--db" not in line:
                    pytest.fail(f"{test_file}: CLI call without --db: {line.strip()}")
