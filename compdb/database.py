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
"""Compilation database entries and their JSON persistence.

The database file follows the JSON Compilation Database format used by clang
tooling: a list of objects with "directory", "file", either "arguments" (list)
or "command" (shell string), and an optional "output".
"""

import os
import json
import shlex
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from compdb.constants import DatabaseLoadError, DatabaseSaveError, TEMP_FILE_SUFFIX, WorkingDirectoryError

logger = logging.getLogger(__name__)

__all__ = ["DatabaseEntry", "OutputFormat", "CompilationDatabase", "merge_entries", "entry_to_dict", "entry_from_dict"]


@dataclass(frozen=True)
class DatabaseEntry:
    """One compilation database record for exactly one source file.

    Attributes:
        directory: Working directory of the compilation
        file: Source file, possibly relative to directory
        command: Command reproducing the compilation, one token per argument
        output: Object file the compilation writes, if known
    """

    directory: str
    file: str
    command: Tuple[str, ...]
    output: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        """Identity used for deduplication: (directory, file), compared verbatim."""
        return (self.directory, self.file)


@dataclass(frozen=True)
class OutputFormat:
    """How entries are written to disk.

    Attributes:
        command_as_array: Write "arguments" lists (True) or shell-quoted "command" strings (False)
        drop_output_field: Omit the "output" field
    """

    command_as_array: bool = True
    drop_output_field: bool = False


def entry_to_dict(entry: DatabaseEntry, output_format: OutputFormat = OutputFormat()) -> Dict[str, Any]:
    """Serialize an entry into the JSON object layout."""
    result: Dict[str, Any] = {"directory": entry.directory, "file": entry.file}
    if output_format.command_as_array:
        result["arguments"] = list(entry.command)
    else:
        result["command"] = " ".join(shlex.quote(token) for token in entry.command)
    if entry.output is not None and not output_format.drop_output_field:
        result["output"] = entry.output
    return result


def entry_from_dict(value: Any) -> DatabaseEntry:
    """Deserialize one JSON object into an entry.

    Accepts both the "arguments" and the "command" form.

    Raises:
        ValueError: If required fields are missing or malformed
    """
    if not isinstance(value, dict):
        raise ValueError(f"entry must be an object, got {type(value).__name__}")

    directory = value.get("directory")
    file = value.get("file")
    if not isinstance(directory, str) or not isinstance(file, str):
        raise ValueError("entry needs string 'directory' and 'file' fields")

    if "arguments" in value:
        arguments = value["arguments"]
        if not isinstance(arguments, list) or not all(isinstance(a, str) for a in arguments):
            raise ValueError(f"'arguments' of {file} must be a list of strings")
        command = tuple(arguments)
    elif "command" in value and isinstance(value["command"], str):
        command = tuple(shlex.split(value["command"]))
    else:
        raise ValueError(f"entry for {file} has neither 'arguments' nor 'command'")

    output = value.get("output")
    if output is not None and not isinstance(output, str):
        raise ValueError(f"'output' of {file} must be a string")

    return DatabaseEntry(directory=directory, file=file, command=command, output=output)


def merge_entries(*groups: Iterable[DatabaseEntry]) -> List[DatabaseEntry]:
    """Concatenate entry groups and keep one entry per (directory, file).

    Later entries replace earlier ones with the same key and take their later
    position, so passing (previous, current) lets the newest observation win.
    """
    merged: "OrderedDict[Tuple[str, str], DatabaseEntry]" = OrderedDict()
    replaced = 0
    for group in groups:
        for entry in group:
            if entry.key in merged:
                del merged[entry.key]
                replaced += 1
            merged[entry.key] = entry
    if replaced:
        logger.debug("Merge replaced %d duplicate entries", replaced)
    return list(merged.values())


class CompilationDatabase:
    """A compilation database file, loaded at most once and saved at most once per run."""

    def __init__(self, path: str, output_format: OutputFormat = OutputFormat()) -> None:
        try:
            self.path = os.path.abspath(path)
        except OSError as e:
            raise WorkingDirectoryError(f"Cannot determine current working directory: {e}") from e
        self.output_format = output_format

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def load(self) -> List[DatabaseEntry]:
        """Read all entries.

        Returns:
            Entries in file order

        Raises:
            DatabaseLoadError: If the file is missing, unreadable or malformed
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                content = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DatabaseLoadError(f"Cannot read compilation database {self.path}: {e}") from e

        if not isinstance(content, list):
            raise DatabaseLoadError(f"Compilation database {self.path} is not a JSON list")

        entries = []
        for index, value in enumerate(content):
            try:
                entries.append(entry_from_dict(value))
            except ValueError as e:
                raise DatabaseLoadError(f"Malformed entry #{index} in {self.path}: {e}") from e

        logger.debug("Loaded %d entries from %s", len(entries), self.path)
        return entries

    def save(self, entries: Iterable[DatabaseEntry]) -> None:
        """Write all entries, replacing the file.

        Uses atomic write (temp file + rename) so a failure leaves the previous
        file untouched.

        Raises:
            DatabaseSaveError: If the file cannot be written
        """
        content = [entry_to_dict(entry, self.output_format) for entry in entries]
        temp_path = self.path + TEMP_FILE_SUFFIX
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(content, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self.path)
        except OSError as e:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as cleanup_error:
                    logger.warning("Failed to remove %s: %s", temp_path, cleanup_error)
            raise DatabaseSaveError(f"Cannot write compilation database {self.path}: {e}") from e

        logger.debug("Saved %d entries to %s", len(content), self.path)
