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
"""Shared constants for the build-compdb tools.

This module provides centralized constants and the exception hierarchy used across
the compilation database builder, so that exit codes and defaults stay consistent
between the library and the command-line entry point.
"""

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# Build System Constants
# =============================================================================

COMPILE_COMMANDS_JSON = "compile_commands.json"  # Standard compilation database filename
TRACE_FILE_SUFFIX = ".process_start.json"  # Per-process report written by the tracing layer
TEMP_FILE_SUFFIX = ".tmp"  # Suffix for the sibling file used for atomic saves

# =============================================================================
# MPI Wrapper Probing
# =============================================================================

MPI_PROBE_FLAGS = ("--show", "--showme")  # Tried in order, first success wins

# =============================================================================
# Exception Classes
# =============================================================================


class CompdbError(Exception):
    """Base exception for all build-compdb errors.

    All exceptions carry an exit_code attribute that indicates what exit code
    the program should use when this error is caught at the main entry point.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Classification outcomes: expected, skip a single event, never abort a run
class ClassificationError(CompdbError):
    """Raised when a command is not a compilation that belongs in the database."""


class NotCompilerError(ClassificationError):
    """Raised when the executable is not recognized as a compiler."""


class NotCompilationError(ClassificationError):
    """Raised when the compiler only preprocesses or runs an internal pass."""


class NoSourceFilesError(ClassificationError):
    """Raised when the compiler call names no source files."""


# Validation errors (EXIT_INVALID_ARGS)
class ValidationError(CompdbError):
    """Raised when input validation fails (arguments, paths, etc)."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class ConfigurationError(ValidationError):
    """Raised when the configuration file or options are invalid."""


class EventStreamError(ValidationError):
    """Raised when an event log or trace directory cannot be read."""


class WorkingDirectoryError(ValidationError):
    """Raised when the current working directory cannot be determined."""


# External tool errors
class ExternalToolError(CompdbError):
    """Raised when external programs fail."""


class MpiWrapperError(ExternalToolError):
    """Raised when an MPI compiler wrapper cannot be probed for its real compiler."""


# Persistence errors (EXIT_RUNTIME_ERROR)
class DatabaseError(CompdbError):
    """Raised when the compilation database cannot be read or written."""


class DatabaseLoadError(DatabaseError):
    """Raised when an existing compilation database cannot be read or parsed."""


class DatabaseSaveError(DatabaseError):
    """Raised when the compilation database cannot be written."""
