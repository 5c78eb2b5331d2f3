import json
import zipfile
from pathlib import Path

import pytest

from e2e_runner import cli
from e2e_runner.memory_driver import InMemorySessionFactory
from e2e_runner.runner import run_suite


HOME_SUITE = Path(__file__).resolve().parents[1] / "suites" / "home_screen.json"


@pytest.fixture
def in_memory(monkeypatch, make_routes):
    def use(routes):
        async def execute(suites, config):
            return await run_suite(suites, InMemorySessionFactory(routes), config)

        monkeypatch.setattr(cli, "execute", execute)

    return use


def run_dirs(out_dir):
    return sorted(out_dir.glob("run_*"))


def test_passing_run_writes_artifacts(tmp_path, in_memory, make_routes):
    in_memory(make_routes())

    code = cli.main(["--suite", str(HOME_SUITE), "--base-url", "http://localhost:8080",
                     "--timeout-ms", "300", "--interval-ms", "10", "--out-dir", str(tmp_path)])

    assert code == 0
    [run_dir] = run_dirs(tmp_path)
    data = json.loads((run_dir / "results.json").read_text(encoding="utf-8"))
    assert data["summary"] == {"total": 3, "passed": 3, "failed": 0, "errored": 0}
    assert (run_dir / "report.html").exists()
    with zipfile.ZipFile(run_dir / "archive.zip") as zf:
        assert set(zf.namelist()) == {"results.json", "report.html"}


def test_failing_run_exits_nonzero(tmp_path, in_memory, make_routes):
    in_memory(make_routes(redirect=False))

    code = cli.main(["--suite", str(HOME_SUITE), "--base-url", "http://localhost:8080",
                     "--timeout-ms", "100", "--interval-ms", "10", "--out-dir", str(tmp_path)])

    assert code == 1


def test_unreadable_suite_exits(tmp_path, in_memory, make_routes):
    in_memory(make_routes())
    with pytest.raises(SystemExit):
        cli.main(["--suite", str(tmp_path / "missing.json"), "--out-dir", str(tmp_path)])


def test_invalid_timeout_exits(tmp_path, in_memory, make_routes):
    in_memory(make_routes())
    with pytest.raises(SystemExit):
        cli.main(["--suite", str(HOME_SUITE), "--interval-ms", "0", "--out-dir", str(tmp_path)])
