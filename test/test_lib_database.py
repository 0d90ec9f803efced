#!/usr/bin/env python3
"""Tests for compdb/database.py"""

import os
import json

import pytest

from compdb.constants import DatabaseError, DatabaseLoadError, DatabaseSaveError
from compdb.database import CompilationDatabase, DatabaseEntry, OutputFormat, entry_from_dict, entry_to_dict, merge_entries


def _entry(file: str, directory: str = "/proj", flag: str = "-O0") -> DatabaseEntry:
    stem = os.path.splitext(file)[0]
    return DatabaseEntry(directory=directory, file=file, command=("gcc", "-c", flag, file, "-o", stem + ".o"), output=stem + ".o")


class TestEntrySerialization:
    """Tests for entry_to_dict() and entry_from_dict()."""

    def test_array_form(self) -> None:
        """The default layout writes an arguments list."""
        value = entry_to_dict(_entry("a.c"))
        assert value == {"directory": "/proj", "file": "a.c", "arguments": ["gcc", "-c", "-O0", "a.c", "-o", "a.o"], "output": "a.o"}

    def test_string_form_quotes_tokens(self) -> None:
        """Tokens with spaces survive the shell string form."""
        entry = DatabaseEntry("/proj", "a b.c", ("gcc", "-c", "-DNAME=a value", "a b.c"))
        value = entry_to_dict(entry, OutputFormat(command_as_array=False))
        assert value["command"] == "gcc -c '-DNAME=a value' 'a b.c'"
        assert "arguments" not in value
        assert entry_from_dict(value).command == entry.command

    def test_drop_output_field(self) -> None:
        value = entry_to_dict(_entry("a.c"), OutputFormat(drop_output_field=True))
        assert "output" not in value

    def test_missing_output_is_omitted(self) -> None:
        value = entry_to_dict(DatabaseEntry("/proj", "a.c", ("gcc", "-c", "a.c")))
        assert "output" not in value

    def test_from_dict_prefers_arguments(self) -> None:
        """When both forms are present the list is authoritative."""
        entry = entry_from_dict({"directory": "/d", "file": "x.c", "arguments": ["cc", "-c", "x.c"], "command": "ignored"})
        assert entry.command == ("cc", "-c", "x.c")
        assert entry.output is None

    @pytest.mark.parametrize(
        "value",
        [
            [],
            {"file": "x.c", "arguments": ["cc"]},
            {"directory": "/d", "arguments": ["cc"]},
            {"directory": "/d", "file": "x.c"},
            {"directory": "/d", "file": "x.c", "arguments": "cc -c x.c"},
            {"directory": "/d", "file": "x.c", "arguments": ["cc", 1]},
            {"directory": "/d", "file": "x.c", "arguments": ["cc"], "output": 3},
        ],
    )
    def test_from_dict_rejects_malformed(self, value: object) -> None:
        with pytest.raises(ValueError):
            entry_from_dict(value)


class TestMergeEntries:
    """Tests for merge_entries()."""

    def test_disjoint_groups_concatenate(self) -> None:
        merged = merge_entries([_entry("a.c")], [_entry("b.c")])
        assert [entry.file for entry in merged] == ["a.c", "b.c"]

    def test_newest_entry_wins_and_moves_last(self) -> None:
        """A re-observed file replaces the old record at its new position."""
        previous = [_entry("a.c"), _entry("b.c")]
        current = [_entry("a.c", flag="-O2")]
        merged = merge_entries(previous, current)

        assert [entry.file for entry in merged] == ["b.c", "a.c"]
        assert merged[-1].command[2] == "-O2"

    def test_duplicates_within_one_group(self) -> None:
        merged = merge_entries([_entry("a.c", flag="-O1"), _entry("a.c", flag="-O3")])
        assert len(merged) == 1
        assert merged[0].command[2] == "-O3"

    def test_key_includes_directory(self) -> None:
        """The same file name in two directories are two compilations."""
        merged = merge_entries([_entry("a.c", directory="/one"), _entry("a.c", directory="/two")])
        assert len(merged) == 2

    def test_key_is_verbatim(self) -> None:
        """Paths are compared as written, without normalization."""
        merged = merge_entries([_entry("a.c"), _entry("./a.c")])
        assert len(merged) == 2

    def test_empty(self) -> None:
        assert merge_entries() == []
        assert merge_entries([], []) == []


class TestCompilationDatabase:
    """Tests for loading and saving the database file."""

    def test_save_and_load(self, temp_dir: str) -> None:
        database = CompilationDatabase(os.path.join(temp_dir, "compile_commands.json"))
        entries = [_entry("a.c"), _entry("b.c")]

        assert not database.exists()
        database.save(entries)

        assert database.exists()
        assert database.load() == entries
        assert not os.path.exists(database.path + ".tmp")

    def test_saved_file_layout(self, temp_dir: str) -> None:
        """The file is a JSON list of entry objects."""
        path = os.path.join(temp_dir, "compile_commands.json")
        CompilationDatabase(path).save([_entry("a.c")])

        with open(path, "r", encoding="utf-8") as f:
            content = json.load(f)
        assert content == [{"directory": "/proj", "file": "a.c", "arguments": ["gcc", "-c", "-O0", "a.c", "-o", "a.o"], "output": "a.o"}]

    def test_save_string_form(self, temp_dir: str) -> None:
        path = os.path.join(temp_dir, "compile_commands.json")
        database = CompilationDatabase(path, OutputFormat(command_as_array=False))
        database.save([_entry("a.c")])

        with open(path, "r", encoding="utf-8") as f:
            content = json.load(f)
        assert content[0]["command"] == "gcc -c -O0 a.c -o a.o"
        assert database.load() == [_entry("a.c")]

    def test_save_empty(self, temp_dir: str) -> None:
        """An empty run still writes a valid database."""
        database = CompilationDatabase(os.path.join(temp_dir, "compile_commands.json"))
        database.save([])
        assert database.load() == []

    def test_relative_path_is_absolute(self, temp_dir: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(temp_dir)
        database = CompilationDatabase("compile_commands.json")
        assert os.path.isabs(database.path)
        assert os.path.basename(database.path) == "compile_commands.json"

    def test_load_sample(self, sample_database: str) -> None:
        entries = CompilationDatabase(sample_database).load()
        assert [entry.file for entry in entries] == ["old.c", "main.c"]

    def test_load_missing_file(self, temp_dir: str) -> None:
        with pytest.raises(DatabaseLoadError):
            CompilationDatabase(os.path.join(temp_dir, "missing.json")).load()

    @pytest.mark.parametrize("content", ["not json", '{"directory": "/d"}', '[{"directory": "/d"}]', "[1, 2]"])
    def test_load_malformed(self, temp_dir: str, content: str) -> None:
        path = os.path.join(temp_dir, "compile_commands.json")
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)

        with pytest.raises(DatabaseLoadError) as exc_info:
            CompilationDatabase(path).load()
        assert isinstance(exc_info.value, DatabaseError)
        assert path in str(exc_info.value)

    def test_failed_save_keeps_previous_file(self, sample_database: str, monkeypatch: pytest.MonkeyPatch) -> None:
        """A failing rename leaves the previous database and no temp file."""
        with open(sample_database, "r", encoding="utf-8") as f:
            before = f.read()

        def failing_replace(src: str, dst: str) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", failing_replace)
        database = CompilationDatabase(sample_database)
        with pytest.raises(DatabaseSaveError):
            database.save([_entry("new.c")])

        monkeypatch.undo()
        with open(sample_database, "r", encoding="utf-8") as f:
            assert f.read() == before
        assert not os.path.exists(sample_database + ".tmp")

    def test_save_into_missing_directory(self, temp_dir: str) -> None:
        database = CompilationDatabase(os.path.join(temp_dir, "no", "such", "dir", "compile_commands.json"))
        with pytest.raises(DatabaseSaveError):
            database.save([_entry("a.c")])
