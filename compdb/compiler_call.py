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
"""Parsing of compiler arguments into a structured compiler call."""

import os
import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterator, List, Optional, Sequence, Tuple

from compdb.compiler_classifier import CompilerClassifier
from compdb.compiler_pass import CompilerPass, PassState
from compdb.constants import NoSourceFilesError, NotCompilationError, NotCompilerError
from compdb.flag_filter import DEFAULT_FLAG_FILTER, FilteredFlags, FlagFilterConfig

logger = logging.getLogger(__name__)

__all__ = ["CompilerCall", "SOURCE_EXTENSIONS", "classify_source", "parse_compiler_call", "compiler_call_from_command"]

# Extensions (case-sensitive) of files a compiler translates on its own
SOURCE_EXTENSIONS: FrozenSet[str] = frozenset(
    {
        # C and preprocessed C
        ".c",
        ".i",
        # C++ and preprocessed C++
        ".C",
        ".cc",
        ".CC",
        ".cp",
        ".cpp",
        ".cxx",
        ".c++",
        ".C++",
        ".txx",
        ".ii",
        # Objective-C / Objective-C++
        ".m",
        ".mi",
        ".mm",
        ".mii",
        # Assembler
        ".s",
        ".S",
        ".sx",
        ".asm",
    }
)

# Options whose value is a separate argument which could look like a file name
OPTIONS_WITH_VALUE: FrozenSet[str] = frozenset(
    {
        "-D",
        "-I",
        "-U",
        "-include",
        "-imacros",
        "-isystem",
        "-iquote",
        "-idirafter",
        "-isysroot",
        "-iprefix",
        "-iwithprefix",
        "-x",
        "-arch",
        "-target",
        "-Xclang",
        "-Xpreprocessor",
        "-Xassembler",
    }
)


def classify_source(path: str) -> bool:
    """Check if a path names a source file by its extension.

    Args:
        path: File path as it appeared on the command line

    Returns:
        True if the extension is one of SOURCE_EXTENSIONS
    """
    _, extension = os.path.splitext(path)
    return extension in SOURCE_EXTENSIONS


@dataclass(frozen=True)
class CompilerCall:
    """One classified compiler invocation.

    Attributes:
        directory: Working directory of the process
        compiler: Compiler executable as invoked (wrappers already removed)
        compiler_pass: The pass the arguments select
        flags: Retained compiler options, in original order
        sources: Source files, in original order
        output: Explicit -o argument, if any
    """

    directory: str
    compiler: str
    compiler_pass: CompilerPass
    flags: Tuple[str, ...]
    sources: Tuple[str, ...]
    output: Optional[str] = None


def _next_or_none(it: Iterator[str]) -> Optional[str]:
    return next(it, None)


def parse_compiler_call(
    directory: str, compiler: str, arguments: Sequence[str], flag_filter: FlagFilterConfig = DEFAULT_FLAG_FILTER
) -> CompilerCall:
    """Build a compiler call from the arguments of a recognized compiler.

    Each argument is offered, in order, to: the pass state, the output option,
    the option collector (an option and its separate value stay together), and
    the source file collector. Arguments none of them takes are dropped.

    Args:
        directory: Working directory of the compiler process
        compiler: Compiler executable
        arguments: Compiler arguments, without the executable
        flag_filter: Table of arguments removed before parsing

    Returns:
        The parsed CompilerCall

    Raises:
        NotCompilationError: The call only preprocesses or is internal
        NoSourceFilesError: The call names no source files
    """
    state = PassState()
    output: Optional[str] = None
    flags: List[str] = []
    sources: List[str] = []

    it = iter(FilteredFlags(arguments, flag_filter))
    for argument in it:
        if state.take(argument):
            continue
        if argument == "-o":
            output = _next_or_none(it)
            continue
        if argument.startswith("-"):
            flags.append(argument)
            if argument in OPTIONS_WITH_VALUE:
                value = _next_or_none(it)
                if value is not None:
                    flags.append(value)
            continue
        if classify_source(argument):
            sources.append(argument)
            continue
        logger.debug("Dropped argument %s", argument)

    if not state.is_compiling():
        raise NotCompilationError(f"Compiler is not doing compilation ({state.current.name})")
    if not sources:
        raise NoSourceFilesError("Have not found source files")

    return CompilerCall(
        directory=directory,
        compiler=compiler,
        compiler_pass=state.current,
        flags=tuple(flags),
        sources=tuple(sources),
        output=output,
    )


def compiler_call_from_command(
    classifier: CompilerClassifier, directory: str, command: Sequence[str], flag_filter: FlagFilterConfig = DEFAULT_FLAG_FILTER
) -> CompilerCall:
    """Classify a whole command and parse it when it is a compiler call.

    Raises:
        NotCompilerError: The command does not run a compiler
        NotCompilationError: The call only preprocesses or is internal
        NoSourceFilesError: The call names no source files
    """
    split = classifier.split(command)
    if split is None:
        raise NotCompilerError("Compiler not recognized")
    compiler, arguments = split
    return parse_compiler_call(directory, compiler, arguments, flag_filter)
