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
"""Compiler pass tracking for parsed compiler invocations.

A compiler invocation performs linking unless one of its arguments asks it to stop
earlier. The pass only ever moves towards earlier phases, following the precedence
order Internal > Preprocessor > Compilation > Linking.
"""

import enum
import logging
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)

__all__ = ["CompilerPass", "PHASE_FLAGS", "advance", "PassState"]


class CompilerPass(enum.IntEnum):
    """Compilation phase performed by a compiler call.

    Integer values encode the precedence: a higher value wins over a lower one.

    Attributes:
        LINKING: Default, a plain compiler call compiles and links
        COMPILATION: Stops after producing objects or assembly (-c, -S)
        PREPROCESSOR: Only preprocesses or writes dependencies (-E, -M, -MM)
        INTERNAL: Informational or frontend-internal invocation (-v, -###, -cc1)
    """

    LINKING = 0
    COMPILATION = 1
    PREPROCESSOR = 2
    INTERNAL = 3

    def is_compiling(self) -> bool:
        """True for calls that are real build steps (compilation or linking)."""
        return self in (CompilerPass.COMPILATION, CompilerPass.LINKING)


# Arguments which select the compiler pass
PHASE_FLAGS: Mapping[str, CompilerPass] = MappingProxyType(
    {
        "-v": CompilerPass.INTERNAL,
        "-###": CompilerPass.INTERNAL,
        "-cc1": CompilerPass.INTERNAL,
        "-cc1as": CompilerPass.INTERNAL,
        "-E": CompilerPass.PREPROCESSOR,
        "-M": CompilerPass.PREPROCESSOR,
        "-MM": CompilerPass.PREPROCESSOR,
        "-c": CompilerPass.COMPILATION,
        "-S": CompilerPass.COMPILATION,
    }
)


def advance(current: CompilerPass, proposed: CompilerPass) -> CompilerPass:
    """Return the pass after seeing a flag that proposes a new pass.

    The proposed pass is taken only if it has strictly higher precedence.
    """
    if proposed > current:
        return proposed
    return current


class PassState:
    """Mutable holder of the pass while the arguments of one call are consumed."""

    def __init__(self, initial: CompilerPass = CompilerPass.LINKING) -> None:
        self.current = initial

    def take(self, token: str) -> bool:
        """Consume token if it is a phase flag.

        Args:
            token: One compiler argument

        Returns:
            True if the token was a phase flag (the state may or may not change),
            False if it is not a phase flag and the state is untouched
        """
        proposed = PHASE_FLAGS.get(token)
        if proposed is None:
            return False
        previous = self.current
        self.current = advance(previous, proposed)
        if self.current is not previous:
            logger.debug("Compiler pass %s -> %s (%s)", previous.name, self.current.name, token)
        return True

    def is_compiling(self) -> bool:
        return self.current.is_compiling()

    def __repr__(self) -> str:
        return f"PassState({self.current.name})"
