#!/usr/bin/env python3
"""Tests for compdb/flag_filter.py"""

import re
from types import MappingProxyType
from typing import List

import pytest

from compdb.flag_filter import DEFAULT_FLAG_FILTER, FilteredFlags, FlagFilterConfig, filter_flags


class TestFilterFlags:
    """Tests for the default drop table."""

    def test_empty(self) -> None:
        """Empty input gives empty output."""
        assert filter_flags([]) == []

    def test_not_skip(self) -> None:
        """Unrelated arguments pass through in order."""
        assert filter_flags(["a", "b", "c"]) == ["a", "b", "c"]
        assert filter_flags(["-a", "-b", "-c"]) == ["-a", "-b", "-c"]
        assert filter_flags(["/a", "/b", "/c"]) == ["/a", "/b", "/c"]

    @pytest.mark.parametrize(
        "arguments,expected",
        [
            (["a", "-MD", "b"], ["a", "b"]),
            (["a", "-MMD", "b"], ["a", "b"]),
            (["a", "-MF", "file", "b"], ["a", "b"]),
            (["a", "-MG", "-MT", "skip", "b"], ["a", "b"]),
            (["a", "-MG", "b", "-MT", "skip", "c"], ["a", "b", "c"]),
            (["a", "-MQ", "target", "-MP", "b"], ["a", "b"]),
        ],
    )
    def test_skip_dependency_flags(self, arguments: List[str], expected: List[str]) -> None:
        """Dependency file flags and their values are removed."""
        assert filter_flags(arguments) == expected

    @pytest.mark.parametrize(
        "arguments,expected",
        [
            (["a", "-live", "b"], ["a", "b"]),
            (["a", "-L/path", "b"], ["a", "b"]),
            (["a", "-Wl,option", "b"], ["a", "b"]),
            (["a", "-live", "-L/path", "b"], ["a", "b"]),
            (["a", "-l", "m", "-L", "/lib", "b"], ["a", "b"]),
            (["-static", "-shared", "-s", "-rdynamic", "x"], ["x"]),
            (["-Xlinker", "--gc-sections", "-T", "link.ld", "-z", "now", "-u", "sym", "x"], ["x"]),
        ],
    )
    def test_skip_linker_flags(self, arguments: List[str], expected: List[str]) -> None:
        """Linker options, glued or with a separate value, are removed."""
        assert filter_flags(arguments) == expected

    def test_skip_msvc_flags(self) -> None:
        """clang-cl noise is removed."""
        assert filter_flags(["-nologo", "-EHsc", "a.cpp", "-EHa"]) == ["a.cpp"]

    def test_trailing_option_without_value(self) -> None:
        """An option missing its trailing value at the end does not fail."""
        assert filter_flags(["a", "-MF"]) == ["a"]

    def test_bare_wl_is_kept(self) -> None:
        """-Wl, without a value does not match the glued linker pattern."""
        assert filter_flags(["-Wl,"]) == ["-Wl,"]


class TestFilteredFlags:
    """Tests for the iterable view."""

    def test_restartable(self) -> None:
        """Iterating twice yields the same sequence."""
        view = FilteredFlags(["-c", "-MD", "a.c"])
        assert list(view) == ["-c", "a.c"]
        assert list(view) == ["-c", "a.c"]

    def test_lazy_lookahead(self) -> None:
        """Callers can pull values through the same iterator."""
        it = iter(FilteredFlags(["-o", "-MD", "out.o"]))
        assert next(it) == "-o"
        assert next(it) == "out.o"
        assert next(it, None) is None

    def test_custom_config(self) -> None:
        """A custom table replaces the defaults."""
        config = FlagFilterConfig(ignored_flags=MappingProxyType({"-drop": 2}), linker_flag=re.compile(r"^-X.+"))
        assert list(FilteredFlags(["a", "-drop", "1", "2", "-Xfoo", "-MD", "b"], config)) == ["a", "-MD", "b"]

    def test_default_config_is_shared(self) -> None:
        """The default configuration is a single immutable object."""
        assert FilteredFlags([])._config is DEFAULT_FLAG_FILTER
        with pytest.raises(TypeError):
            DEFAULT_FLAG_FILTER.ignored_flags["-new"] = 0  # type: ignore[index]

    def test_negative_count_rejected(self) -> None:
        """A negative trailing argument count is a configuration error."""
        with pytest.raises(ValueError) as exc_info:
            FlagFilterConfig(ignored_flags=MappingProxyType({"-ok": 1, "-bad": -1}))
        assert "-bad" in str(exc_info.value)
