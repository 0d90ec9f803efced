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
"""Building a compilation database from the events of a traced build.

One run goes through: load the previous database (append mode only), classify
every process creation, keep the compiler calls the policy asks for, expand them
into entries, merge with the previous entries and save once.

Example usage:
    from compdb.builder import BuildPolicy, DatabaseBuilder
    from compdb.database import CompilationDatabase
    from compdb.events import read_events

    builder = DatabaseBuilder(BuildPolicy(append_to_existing=True))
    report = builder.build(read_events("events.jsonl"), CompilationDatabase("compile_commands.json"))
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from compdb.compiler_call import CompilerCall, compiler_call_from_command
from compdb.compiler_classifier import DEFAULT_CLASSIFIER, ClassifierConfig, CompilerClassifier, MpiResolver
from compdb.compiler_pass import CompilerPass
from compdb.constants import ClassificationError, NotCompilerError
from compdb.database import CompilationDatabase, DatabaseEntry, merge_entries
from compdb.entry_generator import generate_entries
from compdb.events import Event, ProcessCreated, to_execution
from compdb.flag_filter import DEFAULT_FLAG_FILTER, FlagFilterConfig
from compdb.mpi_utils import resolve_mpi
from compdb.process_tree import ProcessTree

logger = logging.getLogger(__name__)

__all__ = ["BuildPolicy", "BuildReport", "DatabaseBuilder"]


@dataclass(frozen=True)
class BuildPolicy:
    """What a build run records and how it treats the existing database.

    Attributes:
        append_to_existing: Merge into the existing database instead of replacing it
        include_linking: Also record calls which compile and link in one step
        skip_compiler_children: Ignore compiler calls started by another compiler process
        classifier: Compiler name tables
        flag_filter: Arguments removed before parsing
    """

    append_to_existing: bool = False
    include_linking: bool = False
    skip_compiler_children: bool = False
    classifier: ClassifierConfig = DEFAULT_CLASSIFIER
    flag_filter: FlagFilterConfig = DEFAULT_FLAG_FILTER

    def includes(self, call: CompilerCall) -> bool:
        """Check whether a compiler call belongs in the database."""
        compiler_pass = call.compiler_pass
        return (self.include_linking and compiler_pass.is_compiling()) or compiler_pass is CompilerPass.COMPILATION


@dataclass
class BuildReport:
    """Counters of one build or transform run.

    Attributes:
        events: Events consumed (or entries re-read in transform mode)
        executions: Process creations among them
        compiler_calls: Executions run by a recognized compiler, including
            preprocessing-only calls and calls without source files
        included_calls: Compiler calls kept by the policy
        skipped_children: Compiler executions dropped because a compiler started them
        previous_entries: Entries loaded from the existing database
        new_entries: Entries generated in this run
        merged_entries: Entries written after deduplication
    """

    events: int = 0
    executions: int = 0
    compiler_calls: int = 0
    included_calls: int = 0
    skipped_children: int = 0
    previous_entries: int = 0
    new_entries: int = 0
    merged_entries: int = 0


class DatabaseBuilder:
    """Turns process events into compilation database entries under a policy."""

    def __init__(self, policy: BuildPolicy = BuildPolicy(), mpi_resolver: MpiResolver = resolve_mpi) -> None:
        self.policy = policy
        self.classifier = CompilerClassifier(policy.classifier, mpi_resolver)

    def build(self, events: Iterable[Event], database: CompilationDatabase) -> BuildReport:
        """Record the compilations of a build into the database.

        Args:
            events: Events of the build in arrival order (consumed once)
            database: Database to merge into (append mode) and to save

        Returns:
            Counters of the run

        Raises:
            DatabaseLoadError: If append mode cannot read the existing database
            DatabaseSaveError: If the result cannot be written
        """
        report = BuildReport()

        previous: List[DatabaseEntry] = []
        if self.policy.append_to_existing and database.exists():
            previous = database.load()
            logger.info("Loaded %d entries from %s", len(previous), database.path)
        report.previous_entries = len(previous)

        current = self._entries(self._calls_from_events(events, report), report)

        merged = merge_entries(previous, current)
        report.merged_entries = len(merged)
        database.save(merged)
        logger.info("Wrote %d entries to %s", len(merged), database.path)
        return report

    def transform(self, database: CompilationDatabase) -> BuildReport:
        """Re-parse the commands stored in a database and save the result in place.

        Raises:
            DatabaseLoadError: If the database cannot be read
            DatabaseSaveError: If the result cannot be written
        """
        report = BuildReport()
        previous = database.load()
        report.previous_entries = len(previous)

        current = self._entries(self._calls_from_entries(previous, report), report)

        merged = merge_entries(current)
        report.merged_entries = len(merged)
        database.save(merged)
        logger.info("Transformed %d entries into %d in %s", len(previous), len(merged), database.path)
        return report

    def _classify(self, directory: str, command: List[str], report: BuildReport) -> Tuple[bool, Optional[CompilerCall]]:
        """Return (is a compiler, compiler call or None) for one execution.

        Every execution of a recognized compiler is counted in report.compiler_calls,
        also when it only preprocesses or names no source files.
        """
        logger.debug("Execution: %s @ %s", command, directory)
        try:
            call = compiler_call_from_command(self.classifier, directory, command, self.policy.flag_filter)
        except NotCompilerError:
            return False, None
        except ClassificationError as e:
            report.compiler_calls += 1
            logger.debug("Skipped compiler call %s: %s", command, e)
            return True, None
        report.compiler_calls += 1
        logger.debug("Compiler call: %s", call)
        return True, call

    def _calls_from_events(self, events: Iterable[Event], report: BuildReport) -> Iterator[CompilerCall]:
        if self.policy.skip_compiler_children:
            yield from self._calls_without_compiler_children(events, report)
            return

        for event in events:
            report.events += 1
            execution = to_execution(event)
            if execution is None:
                continue
            report.executions += 1
            _, call = self._classify(*execution, report)
            if call is not None:
                yield call

    def _calls_without_compiler_children(self, events: Iterable[Event], report: BuildReport) -> Iterator[CompilerCall]:
        # The whole trace is needed before the first call can be judged
        classified: List[Tuple[ProcessCreated, bool, Optional[CompilerCall]]] = []
        for event in events:
            report.events += 1
            if not isinstance(event, ProcessCreated):
                continue
            report.executions += 1
            is_compiler, call = self._classify(event.cwd, list(event.cmd), report)
            classified.append((event, is_compiler, call))

        tree = ProcessTree(event for event, _, _ in classified)
        children = tree.descendants_of_any(event.pid for event, is_compiler, _ in classified if is_compiler)

        for event, is_compiler, call in classified:
            if not is_compiler:
                continue
            if event.pid in children:
                logger.debug("Skipped compiler call started by a compiler: %s", list(event.cmd))
                report.skipped_children += 1
                continue
            if call is not None:
                yield call

    def _calls_from_entries(self, entries: Iterable[DatabaseEntry], report: BuildReport) -> Iterator[CompilerCall]:
        for entry in entries:
            report.events += 1
            report.executions += 1
            _, call = self._classify(entry.directory, list(entry.command), report)
            if call is not None:
                yield call

    def _entries(self, calls: Iterable[CompilerCall], report: BuildReport) -> List[DatabaseEntry]:
        entries: List[DatabaseEntry] = []
        for call in calls:
            logger.debug("Compiler runs this pass: %s", call.compiler_pass.name)
            if not self.policy.includes(call):
                continue
            report.included_calls += 1
            for entry in generate_entries(call):
                logger.debug("The output entry: %s", entry)
                entries.append(entry)
        report.new_entries = len(entries)
        return entries
