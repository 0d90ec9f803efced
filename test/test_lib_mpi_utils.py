#!/usr/bin/env python3
"""Tests for compdb/mpi_utils.py

No process is spawned: subprocess.run is replaced by a scripted fake.
"""

import subprocess
from typing import Any, Dict, List, Tuple, Union
from unittest.mock import MagicMock, Mock

import pytest

from compdb.constants import MpiWrapperError
from compdb.mpi_utils import _probe_cache, clear_cache, resolve_mpi


def _scripted_run(script: Dict[Tuple[str, str], Union[str, BaseException]]) -> Mock:
    """Fake subprocess.run answering (wrapper, flag) with stdout or an exception."""

    def run(cmd: List[str], **kwargs: Any) -> Any:
        answer = script.get((cmd[0], cmd[1]), FileNotFoundError(cmd[0]))
        if isinstance(answer, BaseException):
            raise answer
        result = MagicMock()
        result.stdout = answer
        result.returncode = 0
        return result

    return Mock(side_effect=run)


class TestResolveMpi:
    """Tests for resolve_mpi()."""

    def test_show_flag(self, monkeypatch: Any) -> None:
        """MPICH style --show output is split like a shell command."""
        mock_run = _scripted_run({("mpicc", "--show"): "gcc -I/usr/include/mpich -L/usr/lib -lmpich\n"})
        monkeypatch.setattr("subprocess.run", mock_run)

        assert resolve_mpi("mpicc") == ["gcc", "-I/usr/include/mpich", "-L/usr/lib", "-lmpich"]
        assert mock_run.call_count == 1
        assert mock_run.call_args[0][0] == ["mpicc", "--show"]

    def test_showme_fallback(self, monkeypatch: Any) -> None:
        """Open MPI style wrappers reject --show and answer --showme."""
        mock_run = _scripted_run(
            {
                ("mpicxx", "--show"): subprocess.CalledProcessError(1, ["mpicxx", "--show"]),
                ("mpicxx", "--showme"): "g++ -I'/opt/open mpi/include' -pthread\nsecond line ignored\n",
            }
        )
        monkeypatch.setattr("subprocess.run", mock_run)

        assert resolve_mpi("mpicxx") == ["g++", "-I/opt/open mpi/include", "-pthread"]
        assert mock_run.call_count == 2

    def test_both_probes_fail(self, monkeypatch: Any) -> None:
        """Failure of both probes raises MpiWrapperError naming the wrapper."""
        monkeypatch.setattr("subprocess.run", _scripted_run({}))

        with pytest.raises(MpiWrapperError) as exc_info:
            resolve_mpi("mpicc")
        assert "mpicc" in str(exc_info.value)

    def test_empty_output_is_failure(self, monkeypatch: Any) -> None:
        """A successful probe without output does not count."""
        monkeypatch.setattr("subprocess.run", _scripted_run({("mpicc", "--show"): "", ("mpicc", "--showme"): "\n"}))

        with pytest.raises(MpiWrapperError):
            resolve_mpi("mpicc")

    def test_bad_quoting_is_failure(self, monkeypatch: Any) -> None:
        """Unbalanced quotes make the output unusable."""
        monkeypatch.setattr("subprocess.run", _scripted_run({("mpicc", "--show"): "gcc -I'/broken\n"}))

        with pytest.raises(MpiWrapperError):
            resolve_mpi("mpicc")

    def test_timeout_is_failure(self, monkeypatch: Any) -> None:
        """A probe hitting the caller's timeout counts as failed."""
        monkeypatch.setattr(
            "subprocess.run",
            _scripted_run({("mpicc", "--show"): subprocess.TimeoutExpired("mpicc", 1), ("mpicc", "--showme"): "cc -lmpi"}),
        )

        assert resolve_mpi("mpicc", timeout=1) == ["cc", "-lmpi"]


class TestCaching:
    """Tests for the session cache."""

    def test_success_is_cached(self, monkeypatch: Any) -> None:
        """The second resolution of the same wrapper runs no process."""
        mock_run = _scripted_run({("mpicc", "--show"): "gcc -pthread"})
        monkeypatch.setattr("subprocess.run", mock_run)

        first = resolve_mpi("mpicc")
        second = resolve_mpi("mpicc")
        assert first == second == ["gcc", "-pthread"]
        assert mock_run.call_count == 1

    def test_returned_list_is_a_copy(self, monkeypatch: Any) -> None:
        """Callers extending the result do not corrupt the cache."""
        monkeypatch.setattr("subprocess.run", _scripted_run({("mpicc", "--show"): "gcc"}))

        resolve_mpi("mpicc").append("-c")
        assert resolve_mpi("mpicc") == ["gcc"]

    def test_failure_is_cached(self, monkeypatch: Any) -> None:
        """A wrapper which failed is not probed again."""
        mock_run = _scripted_run({})
        monkeypatch.setattr("subprocess.run", mock_run)

        for _ in range(3):
            with pytest.raises(MpiWrapperError):
                resolve_mpi("mpicc")
        assert mock_run.call_count == 2

    def test_clear_cache(self) -> None:
        """clear_cache empties the cache."""
        _probe_cache["mpicc"] = ["gcc"]
        clear_cache()
        assert len(_probe_cache) == 0
