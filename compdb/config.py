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
"""Configuration of a build run.

Settings are layered, later layers win:
    1. defaults of BuildPolicy / OutputFormat
    2. environment: $CC and $CXX are added to the compiler allow-lists
    3. JSON config file (--config)
    4. command-line options

Config file example:
    {
        "append_to_existing": true,
        "include_linking": false,
        "c_compilers": ["arm-none-eabi-gcc"],
        "cxx_compilers": [],
        "only_use": false,
        "skip_compiler_children": false,
        "command_as_array": true,
        "drop_output_field": false
    }
"""

import os
import json
import shlex
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from compdb.builder import BuildPolicy
from compdb.compiler_classifier import ClassifierConfig
from compdb.constants import ConfigurationError
from compdb.database import OutputFormat

logger = logging.getLogger(__name__)

__all__ = ["BOOLEAN_KEYS", "LIST_KEYS", "load_config_file", "compilers_from_environment", "resolve_settings"]

BOOLEAN_KEYS = ("append_to_existing", "include_linking", "skip_compiler_children", "only_use", "command_as_array", "drop_output_field")
LIST_KEYS = ("c_compilers", "cxx_compilers")


def load_config_file(path: str) -> Dict[str, Any]:
    """Read and validate a JSON config file.

    Args:
        path: Path to the config file

    Returns:
        Mapping of recognized keys to their values

    Raises:
        ConfigurationError: If the file cannot be read, is not an object, has unknown
            keys or values of the wrong type
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(content, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    unknown = sorted(set(content) - set(BOOLEAN_KEYS) - set(LIST_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown config key(s) in {path}: {', '.join(unknown)}")

    for key in BOOLEAN_KEYS:
        if key in content and not isinstance(content[key], bool):
            raise ConfigurationError(f"Config key '{key}' in {path} must be true or false")
    for key in LIST_KEYS:
        if key in content:
            value = content[key]
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise ConfigurationError(f"Config key '{key}' in {path} must be a list of strings")

    logger.debug("Config from %s: %s", path, content)
    return content


def _compiler_from_variable(value: Optional[str]) -> List[str]:
    # $CC may carry arguments ("gcc -m32"); only the program is a compiler name
    if not value:
        return []
    try:
        tokens = shlex.split(value)
    except ValueError:
        logger.warning("Ignoring unparsable compiler variable: %s", value)
        return []
    return tokens[:1]


def compilers_from_environment(environ: Optional[Mapping[str, str]] = None) -> Tuple[List[str], List[str]]:
    """Return the (C, C++) compilers named by $CC and $CXX."""
    if environ is None:
        environ = os.environ
    return _compiler_from_variable(environ.get("CC")), _compiler_from_variable(environ.get("CXX"))


def resolve_settings(
    file_values: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[BuildPolicy, OutputFormat]:
    """Combine all configuration layers into the immutable run configuration.

    Args:
        file_values: Validated config file content (see load_config_file)
        overrides: Command-line values; None values mean "not given". List values
            are appended to the allow-lists rather than replacing them.
        environ: Environment to read $CC / $CXX from (default: os.environ)

    Returns:
        Tuple of (BuildPolicy, OutputFormat)
    """
    file_values = dict(file_values or {})
    overrides = {key: value for key, value in (overrides or {}).items() if value is not None}

    settings: Dict[str, Any] = {key: value for key, value in file_values.items() if key in BOOLEAN_KEYS}
    settings.update({key: value for key, value in overrides.items() if key in BOOLEAN_KEYS})

    env_cc, env_cxx = compilers_from_environment(environ)
    c_compilers = env_cc + list(file_values.get("c_compilers", [])) + list(overrides.get("c_compilers", []))
    cxx_compilers = env_cxx + list(file_values.get("cxx_compilers", [])) + list(overrides.get("cxx_compilers", []))

    classifier = ClassifierConfig.for_compilers(c_compilers, cxx_compilers, only_use=settings.get("only_use", False))
    if classifier.only_use and not (classifier.c_compilers or classifier.cxx_compilers):
        raise ConfigurationError("Allow-list-only mode needs at least one compiler (--use-cc / --use-c++)")

    policy = BuildPolicy(
        append_to_existing=settings.get("append_to_existing", False),
        include_linking=settings.get("include_linking", False),
        skip_compiler_children=settings.get("skip_compiler_children", False),
        classifier=classifier,
    )
    output_format = OutputFormat(
        command_as_array=settings.get("command_as_array", True),
        drop_output_field=settings.get("drop_output_field", False),
    )
    logger.debug("Policy: %s", policy)
    logger.debug("Output format: %s", output_format)
    return policy, output_format
