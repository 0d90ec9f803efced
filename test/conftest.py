#!/usr/bin/env python3
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Shared pytest fixtures for build-compdb tests.

Fixture Scopes:
- function: Default, recreated for each test
- module: Shared across tests in one file, use for immutable data
"""

import os
import sys
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Sequence
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from compdb import mpi_utils
from compdb.constants import MpiWrapperError
from compdb.events import ProcessCreated, ProcessTerminatedNormally


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="compdb_test_")
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_mpi_cache() -> Generator[None, None, None]:
    """Make every test start and end with an empty MPI probe cache."""
    mpi_utils.clear_cache()
    yield
    mpi_utils.clear_cache()


@pytest.fixture
def make_created() -> Callable[..., ProcessCreated]:
    """Factory for process creation events with sensible defaults."""

    def factory(cmd: Sequence[str], cwd: str = "/proj", pid: int = 100, ppid: int = 1) -> ProcessCreated:
        return ProcessCreated(pid=pid, ppid=ppid, cwd=cwd, cmd=tuple(cmd))

    return factory


@pytest.fixture
def fake_mpi_resolver() -> Callable[[str], List[str]]:
    """MPI resolver which knows mpicc and mpicxx, without spawning processes.

    Calls are recorded in the `calls` attribute.
    """
    known: Dict[str, List[str]] = {
        "mpicc": ["gcc", "-I/usr/lib/openmpi/include", "-pthread"],
        "mpicxx": ["g++", "-I/usr/lib/openmpi/include", "-pthread"],
    }
    calls: List[str] = []

    def resolver(wrapper: str) -> List[str]:
        calls.append(wrapper)
        name = os.path.basename(wrapper)
        if name not in known:
            raise MpiWrapperError(f"Could not determine MPI flags of {wrapper}")
        return list(known[name])

    resolver.calls = calls  # type: ignore[attr-defined]
    return resolver


@pytest.fixture
def sample_events(make_created: Callable[..., ProcessCreated]) -> List[Any]:
    """A small build: make runs two compiles, one preprocessing call and a link."""
    return [
        make_created(["make", "all"], pid=10, ppid=1),
        make_created(["gcc", "-c", "-Iinclude", "-MD", "-MF", "main.d", "main.c", "-o", "main.o"], pid=11, ppid=10),
        ProcessTerminatedNormally(pid=11, exit_code=0),
        make_created(["gcc", "-c", "-DNDEBUG", "util.c", "-o", "util.o"], pid=12, ppid=10),
        make_created(["gcc", "-E", "gen.c"], pid=13, ppid=10),
        make_created(["gcc", "main.o", "util.o", "-o", "app", "-lm"], pid=14, ppid=10),
        ProcessTerminatedNormally(pid=10, exit_code=0),
    ]


@pytest.fixture
def sample_database(temp_dir: str) -> str:
    """Create a compile_commands.json with two entries and return its path."""
    content = [
        {"directory": "/proj", "file": "old.c", "arguments": ["gcc", "-c", "old.c", "-o", "old.o"], "output": "old.o"},
        {"directory": "/proj", "file": "main.c", "arguments": ["gcc", "-c", "-O0", "main.c", "-o", "main.o"], "output": "main.o"},
    ]
    path = os.path.join(temp_dir, "compile_commands.json")
    with open(path, "w") as f:
        json.dump(content, f)
    return path


@pytest.fixture
def write_event_log(temp_dir: str) -> Callable[[List[Dict[str, Any]]], str]:
    """Factory writing event objects as a JSON lines file in temp_dir."""

    def writer(events: List[Dict[str, Any]], name: str = "events.jsonl") -> str:
        path = os.path.join(temp_dir, name)
        with open(path, "w") as f:
            for event in events:
                f.write(json.dumps(event) + "\n")
        return path

    return writer
