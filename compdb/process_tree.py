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
"""Process ancestry of a traced build.

Compiler drivers and wrappers start further compiler processes of their own
(ccache runs the real compiler with "-E" and then "-c" on a temporary file,
gcc runs cc1 and as). Those children describe an implementation detail rather
than a build step; the process tree lets the builder recognize them.
"""

import logging
from typing import Any, Iterable, Set

import networkx as nx

from compdb.events import ProcessCreated

logger = logging.getLogger(__name__)

__all__ = ["ProcessTree"]


class ProcessTree:
    """Directed graph of parent -> child process ids built from creation events.

    Process ids are taken verbatim; a pid reused within one trace merges the
    two processes into one node.
    """

    def __init__(self, events: Iterable[ProcessCreated] = ()) -> None:
        self.graph: "nx.DiGraph[Any]" = nx.DiGraph()
        for event in events:
            self.add(event)

    def add(self, event: ProcessCreated) -> None:
        self.graph.add_node(event.pid)
        if event.ppid != event.pid:
            self.graph.add_edge(event.ppid, event.pid)

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def descendants(self, pid: int) -> Set[int]:
        """Return all processes started, directly or indirectly, by pid."""
        if pid not in self.graph:
            return set()
        return set(nx.descendants(self.graph, pid))

    def descendants_of_any(self, pids: Iterable[int]) -> Set[int]:
        """Return all processes which have at least one of pids as an ancestor.

        Args:
            pids: Ancestor process ids

        Returns:
            Union of the descendants, excluding processes with no ancestor in pids
        """
        ancestors = set(pids)
        result: Set[int] = set()
        for pid in ancestors:
            result |= self.descendants(pid)
        logger.debug("%d processes descend from %d ancestors", len(result), len(ancestors))
        return result
