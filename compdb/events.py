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
"""Process lifecycle events and the readers which produce them.

Events are produced by the tracing layer while the build runs. Only process
creation carries what a compilation database needs (working directory and
command); termination events are accepted and ignored.

Two on-disk sources are supported:
    - an event log: JSON lines, one event object per line, with a "kind" of
      "created", "terminated_normally" or "terminated_abnormally"
    - a trace directory: one "<pid>.process_start.json" report per started process
"""

import os
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from compdb.constants import EventStreamError, TRACE_FILE_SUFFIX

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessCreated",
    "ProcessTerminatedNormally",
    "ProcessTerminatedAbnormally",
    "Event",
    "to_execution",
    "event_from_dict",
    "read_event_log",
    "read_trace_directory",
    "read_events",
]


@dataclass(frozen=True)
class ProcessCreated:
    pid: int
    ppid: int
    cwd: str
    cmd: Tuple[str, ...]
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ProcessTerminatedNormally:
    pid: int
    exit_code: int
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ProcessTerminatedAbnormally:
    pid: int
    signal: str
    timestamp: Optional[datetime] = None


Event = Union[ProcessCreated, ProcessTerminatedNormally, ProcessTerminatedAbnormally]


def to_execution(event: Event) -> Optional[Tuple[str, List[str]]]:
    """Return (working directory, command) of a process creation, None for other events."""
    if isinstance(event, ProcessCreated):
        return event.cwd, list(event.cmd)
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be an ISO-8601 string, got {value!r}")
    # fromisoformat() only learned the "Z" suffix in Python 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _require(value: Dict[str, Any], name: str, kind: type) -> Any:
    if name not in value:
        raise ValueError(f"missing field '{name}'")
    field_value = value[name]
    if not isinstance(field_value, kind) or isinstance(field_value, bool):
        raise ValueError(f"field '{name}' must be {kind.__name__}")
    return field_value


def _command(value: Dict[str, Any]) -> Tuple[str, ...]:
    cmd = _require(value, "cmd", list)
    if not all(isinstance(token, str) for token in cmd):
        raise ValueError("field 'cmd' must be a list of strings")
    return tuple(cmd)


def event_from_dict(value: Any) -> Event:
    """Deserialize one event object.

    Raises:
        ValueError: If the object is not a well-formed event
    """
    if not isinstance(value, dict):
        raise ValueError("event must be a JSON object")

    kind = value.get("kind")
    timestamp = _parse_timestamp(value.get("timestamp"))
    if kind == "created":
        return ProcessCreated(
            pid=_require(value, "pid", int),
            ppid=_require(value, "ppid", int),
            cwd=_require(value, "cwd", str),
            cmd=_command(value),
            timestamp=timestamp,
        )
    if kind == "terminated_normally":
        return ProcessTerminatedNormally(pid=_require(value, "pid", int), exit_code=_require(value, "exit_code", int), timestamp=timestamp)
    if kind == "terminated_abnormally":
        return ProcessTerminatedAbnormally(pid=_require(value, "pid", int), signal=str(value.get("signal", "unknown")), timestamp=timestamp)
    raise ValueError(f"unknown event kind {kind!r}")


def read_event_log(path: str) -> Iterator[Event]:
    """Lazily read events from a JSON lines event log.

    Blank lines are skipped.

        EventStreamError: If the file cannot be read or decoded, or a line is malformed
        EventStreamError: If the file cannot be read or a line is malformed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    event = event_from_dict(json.loads(line))
                except ValueError as e:
                    # json.JSONDecodeError is a ValueError too
                    raise EventStreamError(f"{path}:{line_number}: malformed event: {e}") from e
                logger.debug("Event from log: %s", event)
                yield event
    except (OSError, UnicodeDecodeError) as e:
        raise EventStreamError(f"Cannot read event log {path}: {e}") from e


def _is_execution_trace(path: str) -> bool:
    return path.endswith(TRACE_FILE_SUFFIX)


def _read_trace_report(path: str) -> ProcessCreated:
    try:
        with open(path, "r", encoding="utf-8") as f:
            value = json.load(f)
        if not isinstance(value, dict):
            raise ValueError("report must be a JSON object")
        ppid = value.get("ppid", 0)
        if not isinstance(ppid, int):
            raise ValueError("field 'ppid' must be int")
        return ProcessCreated(
            pid=_require(value, "pid", int),
            ppid=ppid,
            cwd=_require(value, "cwd", str),
            cmd=_command(value),
            timestamp=_parse_timestamp(value.get("timestamp")),
        )
    except OSError as e:
        raise EventStreamError(f"Cannot read trace report {path}: {e}") from e
    except ValueError as e:
        raise EventStreamError(f"{path}: malformed trace report: {e}") from e


def read_trace_directory(path: str) -> Iterator[Event]:
    """Lazily read process creation reports from a trace directory.

    Reports are yielded in modification time order (ties broken by name), which
    follows the order the processes were started. Sub-directories and files
    without the report suffix are skipped.

    Raises:
        EventStreamError: If the directory or a report cannot be read
    """
    if not os.path.isdir(path):
        raise EventStreamError(f"Trace source should be a directory: {path}")

    try:
        candidates = [entry for entry in os.scandir(path) if entry.is_file() and _is_execution_trace(entry.name)]
        candidates.sort(key=lambda entry: (entry.stat().st_mtime_ns, entry.name))
    except OSError as e:
        raise EventStreamError(f"Cannot list trace directory {path}: {e}") from e

    for entry in candidates:
        event = _read_trace_report(entry.path)
        logger.debug("Event from trace: %s", event)
        yield event


def read_events(path: str) -> Iterator[Event]:
    """Read events from a trace directory or an event log, depending on what path is."""
    if os.path.isdir(path):
        return read_trace_directory(path)
    return read_event_log(path)
