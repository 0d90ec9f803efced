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
"""Classification of executed commands as compiler calls.

Recognizes compilers by executable name, unwrapping compiler wrappers (ccache,
distcc) and MPI compiler wrappers on the way. Names are matched on the basename
of the executable, so /usr/bin/gcc and gcc classify the same way.

Recognized name shapes:
    - optional cross-compile prefix:  arm-none-eabi-gcc
    - optional version suffix:        gcc-12, clang-17.0.1
    - explicit allow-list entries:    --use-cc / --use-c++
"""

import os
import re
import logging
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Optional, Pattern, Sequence, Tuple

from compdb.constants import MpiWrapperError
from compdb.mpi_utils import resolve_mpi

logger = logging.getLogger(__name__)

__all__ = ["ClassifierConfig", "DEFAULT_CLASSIFIER", "CompilerClassifier", "basename"]

# Compiler wrappers which may run with or without a compiler argument
WRAPPER_PATTERN = r"^(distcc|ccache)$"

# MPI compiler wrappers which need a probe to reveal the real compiler
MPI_WRAPPER_PATTERN = r"^mpi(cc|cxx|CC|c\+\+)$"

C_COMPILER_PATTERNS = (
    r"^([^-]*-)*[mg]cc(-?\d+(\.\d+){0,2})?$",
    r"^([^-]*-)*clang(-\d+(\.\d+){0,2})?$",
    r"^(|i)cc$",
    r"^(g|)xlc$",
)

CXX_COMPILER_PATTERNS = (
    r"^(c\+\+|cxx|CC)$",
    r"^([^-]*-)*[mg]\+\+(-?\d+(\.\d+){0,2})?$",
    r"^([^-]*-)*clang\+\+(-\d+(\.\d+){0,2})?$",
    r"^icpc$",
    r"^(g|)xl(C|c\+\+)$",
)

# Guards against an MPI wrapper whose probe names another MPI wrapper forever
MAX_UNWRAP_DEPTH = 16

MpiResolver = Callable[[str], List[str]]


def basename(path: str) -> str:
    """Return the file name of an executable path, or the path itself if it has none."""
    return os.path.basename(path) or path


def _compile_all(patterns: Iterable[str]) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(pattern) for pattern in patterns)


@dataclass(frozen=True)
class ClassifierConfig:
    """Immutable name tables used to recognize compilers.

    Create instances with for_compilers() so allow-list entries are reduced to
    basenames, the way they are compared.

    Attributes:
        c_compilers: Basenames always accepted as C compilers
        cxx_compilers: Basenames always accepted as C++ compilers
        only_use: Accept allow-list names only, disabling the name patterns
        wrapper: Pattern of compiler wrapper names
        mpi_wrapper: Pattern of MPI compiler wrapper names
        c_patterns: Patterns of C compiler names
        cxx_patterns: Patterns of C++ compiler names
    """

    c_compilers: FrozenSet[str] = frozenset()
    cxx_compilers: FrozenSet[str] = frozenset()
    only_use: bool = False
    wrapper: Pattern[str] = field(default_factory=lambda: re.compile(WRAPPER_PATTERN))
    mpi_wrapper: Pattern[str] = field(default_factory=lambda: re.compile(MPI_WRAPPER_PATTERN))
    c_patterns: Tuple[Pattern[str], ...] = field(default_factory=lambda: _compile_all(C_COMPILER_PATTERNS))
    cxx_patterns: Tuple[Pattern[str], ...] = field(default_factory=lambda: _compile_all(CXX_COMPILER_PATTERNS))

    @staticmethod
    def for_compilers(c_compilers: Iterable[str] = (), cxx_compilers: Iterable[str] = (), only_use: bool = False) -> "ClassifierConfig":
        """Create a configuration from compiler names or paths.

        Args:
            c_compilers: C compiler names or paths (e.g. from $CC)
            cxx_compilers: C++ compiler names or paths (e.g. from $CXX)
            only_use: Accept only the given compilers

        Returns:
            ClassifierConfig with the default name patterns
        """
        return ClassifierConfig(
            c_compilers=frozenset(basename(c) for c in c_compilers if c),
            cxx_compilers=frozenset(basename(c) for c in cxx_compilers if c),
            only_use=only_use,
        )


DEFAULT_CLASSIFIER = ClassifierConfig()


class CompilerClassifier:
    """Decides whether a command is a compiler call and splits it.

    The MPI probe is injected so the unwrapping logic can be exercised without
    spawning processes.
    """

    def __init__(self, config: ClassifierConfig = DEFAULT_CLASSIFIER, mpi_resolver: MpiResolver = resolve_mpi) -> None:
        self.config = config
        self.mpi_resolver = mpi_resolver

    def split(self, command: Sequence[str]) -> Optional[Tuple[str, List[str]]]:
        """Split a command into compiler and compiler arguments.

        Args:
            command: Executable followed by its arguments

        Returns:
            (compiler, arguments) if the command is a compiler call, None otherwise
        """
        return self._split(list(command), 0)

    def _split(self, command: List[str], depth: int) -> Optional[Tuple[str, List[str]]]:
        if not command:
            return None
        if depth > MAX_UNWRAP_DEPTH:
            logger.debug("Giving up unwrapping %s: too deeply nested", command[0])
            return None

        executable, parameters = command[0], command[1:]

        # 'wrapper compiler parameters' and 'wrapper parameters' are both valid,
        # and a wrapper may wrap another wrapper.
        if self.is_wrapper(executable):
            result = self._split(parameters, depth + 1)
            if result is not None:
                return result
            return executable, parameters

        if self.is_mpi_wrapper(executable):
            try:
                mpi_call = self.mpi_resolver(executable)
            except MpiWrapperError as e:
                logger.debug("Not a compiler call, MPI wrapper unresolved: %s", e)
                return None
            return self._split(list(mpi_call) + parameters, depth + 1)

        if self.is_c_compiler(executable) or self.is_cxx_compiler(executable):
            return executable, parameters

        return None

    def is_wrapper(self, executable: str) -> bool:
        return self.config.wrapper.match(basename(executable)) is not None

    def is_mpi_wrapper(self, executable: str) -> bool:
        return self.config.mpi_wrapper.match(basename(executable)) is not None

    def is_c_compiler(self, executable: str) -> bool:
        """Match against the C allow-list, and the C name patterns unless only_use is set."""
        return self._is_compiler(basename(executable), self.config.c_compilers, self.config.c_patterns)

    def is_cxx_compiler(self, executable: str) -> bool:
        """Match against the C++ allow-list, and the C++ name patterns unless only_use is set."""
        return self._is_compiler(basename(executable), self.config.cxx_compilers, self.config.cxx_patterns)

    def _is_compiler(self, program: str, allowed: FrozenSet[str], patterns: Tuple[Pattern[str], ...]) -> bool:
        if program in allowed:
            return True
        if self.config.only_use:
            return False
        return any(pattern.match(program) for pattern in patterns)
