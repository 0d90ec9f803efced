#!/usr/bin/env python3
# -*- coding: utf-8 -*-
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
"""Resolution of MPI compiler wrappers to the compiler invocation they perform.

MPI wrappers (mpicc, mpicxx, ...) add include and library flags before calling the
real compiler. Open MPI prints that call with --showme, MPICH and derivatives with
--show. The first line of a successful probe is parsed as a shell command.

Probe results are cached within the Python process session (keyed by wrapper path)
so a build with thousands of mpicc calls runs each probe only once.
"""

import shlex
import logging
import subprocess
from typing import Dict, List, Optional

from compdb.constants import MPI_PROBE_FLAGS, MpiWrapperError

logger = logging.getLogger(__name__)

__all__ = ["resolve_mpi", "clear_cache"]

# Session-level cache of probe results; None records a wrapper which failed both probes
_probe_cache: Dict[str, Optional[List[str]]] = {}


def clear_cache() -> None:
    """Clear the MPI probe cache.

    Useful for testing or when environment changes during process lifetime.
    """
    _probe_cache.clear()
    logger.debug("MPI probe cache cleared")


def _run_probe(wrapper: str, flag: str, timeout: Optional[float]) -> List[str]:
    """Run one probe and return its first output line split into arguments.

    Raises:
        MpiWrapperError: If the process fails, prints nothing, or the line cannot be split
    """
    try:
        result = subprocess.run([wrapper, flag], capture_output=True, text=True, check=True, timeout=timeout)
    except subprocess.CalledProcessError as e:
        raise MpiWrapperError(f"{wrapper} {flag} exited with status {e.returncode}") from e
    except subprocess.TimeoutExpired as e:
        raise MpiWrapperError(f"{wrapper} {flag} timed out") from e
    except OSError as e:
        raise MpiWrapperError(f"{wrapper} {flag} could not be started: {e}") from e

    lines = result.stdout.splitlines()
    first_line = lines[0].strip() if lines else ""
    if not first_line:
        raise MpiWrapperError(f"{wrapper} {flag} produced no output")

    try:
        command = shlex.split(first_line)
    except ValueError as e:
        raise MpiWrapperError(f"{wrapper} {flag} output is not a valid shell command: {e}") from e
    if not command:
        raise MpiWrapperError(f"{wrapper} {flag} produced no output")
    return command


def resolve_mpi(wrapper: str, timeout: Optional[float] = None) -> List[str]:
    """Return the compiler command an MPI wrapper would execute.

    Tries each of MPI_PROBE_FLAGS in order and returns the first success.

    Args:
        wrapper: Wrapper executable as it appeared in the command
        timeout: Optional timeout in seconds for each probe (None = wait)

    Returns:
        Compiler executable followed by the flags the wrapper injects

    Raises:
        MpiWrapperError: If no probe flag produced a usable command
    """
    if wrapper in _probe_cache:
        cached = _probe_cache[wrapper]
        if cached is None:
            raise MpiWrapperError(f"Could not determine MPI flags of {wrapper} (cached)")
        return list(cached)

    failures = []
    for flag in MPI_PROBE_FLAGS:
        logger.debug("Probing %s %s...", wrapper, flag)
        try:
            command = _run_probe(wrapper, flag, timeout)
        except MpiWrapperError as e:
            logger.debug("%s", e)
            failures.append(str(e))
            continue
        logger.debug("Resolved %s to %s", wrapper, command)
        _probe_cache[wrapper] = command
        return list(command)

    _probe_cache[wrapper] = None
    raise MpiWrapperError(f"Could not determine MPI flags of {wrapper} (tried: {'; '.join(failures)})")
