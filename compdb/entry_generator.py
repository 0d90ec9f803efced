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
"""Expansion of compiler calls into compilation database entries."""

import os
import logging
from typing import List

from compdb.compiler_call import CompilerCall
from compdb.compiler_pass import CompilerPass
from compdb.database import DatabaseEntry

logger = logging.getLogger(__name__)

__all__ = ["generate_entries", "object_from_source"]

OBJECT_EXTENSION = ".o"
COMPILE_FLAG = "-c"


def object_from_source(source: str) -> str:
    """Return the object file name a compiler would write for a source file.

    Replaces the extension with ".o", or appends ".o" when there is none
    (src/a.c -> src/a.o, noext -> noext.o).
    """
    root, _ = os.path.splitext(source)
    return root + OBJECT_EXTENSION


def _output_for(call: CompilerCall, source: str) -> str:
    # An explicit -o names the object only for a single-source compile step;
    # for a link it names the executable, and with several sources it is ambiguous.
    if call.compiler_pass is not CompilerPass.LINKING and call.output is not None and len(call.sources) == 1:
        return call.output
    return object_from_source(source)


def generate_entries(call: CompilerCall) -> List[DatabaseEntry]:
    """Create one entry per source file of a compiler call.

    Every entry describes the compile step of its file in isolation:
    compiler, -c, the retained flags, the source, and -o with the object file.

    Args:
        call: Parsed compiler call with at least one source

    Returns:
        Entries in source order
    """
    if call.output is not None and len(call.sources) > 1 and call.compiler_pass is not CompilerPass.LINKING:
        logger.debug("Ignoring -o %s for %d sources, synthesizing object names", call.output, len(call.sources))

    entries = []
    for source in call.sources:
        output = _output_for(call, source)
        command = (call.compiler, COMPILE_FLAG) + call.flags + (source, "-o", output)
        entries.append(DatabaseEntry(directory=call.directory, file=source, command=command, output=output))
    return entries
