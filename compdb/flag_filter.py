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
"""Filtering of compiler arguments which are irrelevant for a compilation database.

Dependency file generation flags would make otherwise identical entries differ,
and linker flags are ignored by a compile-only command anyway. Both are removed
before the arguments are classified, so the parser never sees them.
"""

import re
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Pattern, Sequence

logger = logging.getLogger(__name__)

__all__ = ["FlagFilterConfig", "DEFAULT_FLAG_FILTER", "FilteredFlags", "filter_flags"]

# Option name -> number of following arguments which belong to the option
_IGNORED_FLAGS = {
    # dependency file generation
    "-MD": 0,
    "-MMD": 0,
    "-MG": 0,
    "-MP": 0,
    "-MF": 1,
    "-MT": 1,
    "-MQ": 1,
    # linker options
    "-static": 0,
    "-shared": 0,
    "-s": 0,
    "-rdynamic": 0,
    "-l": 1,
    "-L": 1,
    "-u": 1,
    "-z": 1,
    "-T": 1,
    "-Xlinker": 1,
    # clang-cl / msvc
    "-nologo": 0,
    "-EHsc": 0,
    "-EHa": 0,
}

# Linker options with the value glued to the option (-lfoo, -L/path, -Wl,opt)
_LINKER_FLAG_PATTERN = r"^-(l|L|Wl,).+"


@dataclass(frozen=True)
class FlagFilterConfig:
    """Immutable table of arguments to drop.

    Attributes:
        ignored_flags: Exact option -> count of trailing arguments dropped with it
        linker_flag: Pattern of single-token linker options to drop
    """

    ignored_flags: Mapping[str, int] = field(default_factory=lambda: MappingProxyType(dict(_IGNORED_FLAGS)))
    linker_flag: Pattern[str] = field(default_factory=lambda: re.compile(_LINKER_FLAG_PATTERN))

    def __post_init__(self) -> None:
        negative = sorted(flag for flag, count in self.ignored_flags.items() if count < 0)
        if negative:
            raise ValueError(f"Trailing argument counts must not be negative: {', '.join(negative)}")


DEFAULT_FLAG_FILTER = FlagFilterConfig()


class FilteredFlags:
    """Order-preserving view of arguments with ignorable flags removed.

    Iterating twice restarts from the first argument. Only the trailing
    arguments of the current ignored option are ever looked ahead.
    """

    def __init__(self, arguments: Sequence[str], config: FlagFilterConfig = DEFAULT_FLAG_FILTER) -> None:
        self._arguments = arguments
        self._config = config

    def __iter__(self) -> Iterator[str]:
        it = iter(self._arguments)
        for argument in it:
            skip = self._config.ignored_flags.get(argument)
            if skip is not None:
                dropped = [next(it, None) for _ in range(skip)]
                logger.debug("Ignored flag %s %s", argument, " ".join(d for d in dropped if d is not None))
                continue
            if self._config.linker_flag.match(argument):
                logger.debug("Ignored linker flag %s", argument)
                continue
            yield argument


def filter_flags(arguments: Iterable[str], config: FlagFilterConfig = DEFAULT_FLAG_FILTER) -> List[str]:
    """Return the arguments which survive the filter, as a list."""
    return list(FilteredFlags(list(arguments), config))
