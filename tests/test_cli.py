"""
Command line client tests.
"""

import json
import os
import pytest
from unittest.mock import patch

from lor_registry.cli import build_parser, main, run
from lor_registry.core.store import InMemoryRegistryStore
from lor_registry.core.workflow import WorkflowEngine

OWNER = "0xOwner"


@pytest.fixture
def engine():
    return WorkflowEngine(InMemoryRegistryStore(owner=OWNER), read_retry_delay=0)


def invoke(engine, *argv):
    return run(build_parser().parse_args(list(argv)), engine)


class TestCommands:

    def test_add_student(self, engine, capsys):
        status = invoke(engine, "--caller", "0xA", "add-student",
                        "--name", "Alice", "--email", "a@x.com", "--course", "CS")

        assert status == 0
        assert "Student added with id 0" in capsys.readouterr().out

    def test_workflow(self, engine, capsys):
        invoke(engine, "--caller", "0xA", "add-student", "--name", "Alice", "--email", "a@x.com", "--course", "CS")
        assert invoke(engine, "--caller", "0xA", "request", "0") == 0
        assert invoke(engine, "--caller", OWNER, "authorize", "0xApprover") == 0
        assert invoke(engine, "--caller", "0xApprover", "approve", "0") == 0
        capsys.readouterr()

        assert invoke(engine, "show", "0") == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["requested"] is True
        assert shown["approved"] is True

    def test_rejection_exit_status(self, engine, capsys):
        status = invoke(engine, "--caller", "0xA", "authorize", "0xA")

        assert status == 1
        assert "UNAUTHORIZED" in capsys.readouterr().err

    def test_show_missing(self, engine, capsys):
        assert invoke(engine, "show", "4") == 1
        assert "NOT_FOUND" in capsys.readouterr().err

    def test_count(self, engine, capsys):
        invoke(engine, "--caller", "0xA", "add-student", "--name", "Alice", "--email", "a@x.com", "--course", "CS")
        capsys.readouterr()

        assert invoke(engine, "count") == 0
        assert capsys.readouterr().out.strip() == "1"


class TestMain:

    def test_main_uses_configured_store(self, tmp_path, capsys):
        env = {"STORE_BACKEND": "sqlite", "DB_PATH": str(tmp_path / "cli.db"), "REGISTRY_OWNER": OWNER}
        with patch.dict(os.environ, env):
            assert main(["--caller", "0xA", "add-student", "--name", "A", "--email", "a@x.com", "--course", "CS"]) == 0
            assert main(["count"]) == 0

        assert capsys.readouterr().out.strip().splitlines()[-1] == "1"

    def test_main_reports_configuration_error(self, capsys):
        with patch.dict(os.environ, {"STORE_BACKEND": "ledger"}):
            assert main(["count"]) == 1
        assert "CONFIGURATION_ERROR" in capsys.readouterr().err

    def test_serve_runs_uvicorn(self):
        with patch("uvicorn.run") as mock_run:
            assert main(["serve", "--port", "9001"]) == 0
        assert mock_run.call_args.kwargs["port"] == 9001
