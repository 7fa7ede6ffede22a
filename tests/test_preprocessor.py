# =============================================================================
# test_preprocessor.py - Preprocessor Parser Tests
# =============================================================================
# Test coverage includes:
#   - Flattening rules (whitespace, newlines, strings)
#   - SourceMap construction, including across #include
#   - #include search paths, errors, cycles and depth limit
#   - #define / #undef, macro substitution and warnings
# =============================================================================

import logging
from pathlib import Path

import pytest

from basm.errors import DirectiveError, IncludeError, LexError, SourceLocation
from basm.fileio import SourceLoader
from basm.preprocessor import (
    MAX_INCLUDE_DEPTH,
    MacroTable,
    Parser,
    preprocess,
    preprocess_file,
    tokenize,
)


# =============================================================================
# Helper Functions
# =============================================================================

def flatten(source: str, **kwargs) -> str:
    """Preprocess ``source`` and return the flattened text."""
    return preprocess(source, "main.asm", **kwargs).text


def write(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class MemoryLoader(SourceLoader):
    """Serves included files from a dictionary."""

    def __init__(self, files: dict[str, str]):
        super().__init__()
        self.files = files

    def find(self, name, including_file):
        return name if name in self.files else None

    def read(self, path):
        return self.files[path]

    def identity(self, path):
        return path


# =============================================================================
# Flattening
# =============================================================================

class TestFlattening:
    """Test how ordinary tokens are re-emitted."""

    def test_code_passes_through(self):
        assert flatten("mov ac, 0x10\nret\n") == "mov ac, 0x10\nret\n"

    def test_whitespace_collapsed(self):
        """A whitespace run becomes one space."""
        assert flatten("mov\t\t ac,   1") == "mov ac, 1"

    def test_indentation_dropped(self):
        """Whitespace at the start of a line is consumed with the newline."""
        assert flatten("loop:\n    ret\n") == "loop:\nret\n"

    def test_comments_removed(self):
        assert flatten("ret ; back\nhlt") == "ret \nhlt"

    def test_string_reemitted_raw(self):
        """Strings keep their original escapes."""
        assert flatten(r'.db "a\nb", 0') == r'.db "a\nb", 0'

    def test_char_literal_passes_through(self):
        assert flatten("mov ac, ';'") == "mov ac, ';'"

    def test_directive_line_left_empty(self):
        """A directive consumes its line but not the newline."""
        assert flatten("#define X 1\nret\n") == "\nret\n"


# =============================================================================
# SourceMap
# =============================================================================

class TestSourceMap:
    """Test SourceMap construction for a single file."""

    @pytest.mark.parametrize("source", [
        "",
        "ret",
        "ret\n",
        "a\nb\nc",
        "\n\n\n",
        "#define X 1\nmov ac, X\n#undef X\n",
    ])
    def test_entries_equal_newlines_plus_one(self, source):
        """One entry per output line, all naming the single file."""
        result = preprocess(source, "main.asm")
        assert len(result.source_map) == result.text.count("\n") + 1
        assert result.source_map.filenames == ["main.asm"]
        assert {e.filename_index for e in result.source_map.line_entries} == {0}

    def test_entries_follow_source_lines(self):
        result = preprocess("a\nb\nc", "main.asm")
        assert [result.source_map.resolve(n) for n in (1, 2, 3)] == [
            ("main.asm", 1), ("main.asm", 2), ("main.asm", 3),
        ]


# =============================================================================
# Includes
# =============================================================================

class TestInclude:
    """Test #include."""

    def test_include_round_trip(self, tmp_path):
        """Output is the includer's text with the included output spliced in."""
        lib = write(tmp_path, "b.asm", "x\ny\n")
        main = write(tmp_path, "main.asm", 'a\n#include "b.asm"\nc\n')

        result = preprocess_file(main)
        included = preprocess_file(lib)

        assert result.text == "a\n" + included.text + "\nc\n"
        assert len(result.source_map) == result.text.count("\n") + 1

    def test_include_map_resolution(self, tmp_path):
        """Included lines resolve to the included file."""
        write(tmp_path, "b.asm", "x\ny\n")
        main = write(tmp_path, "main.asm", 'a\n#include "b.asm"\nc\n')

        source_map = preprocess_file(main).source_map
        lines = [(Path(f).name, n) for f, n in
                 (source_map.resolve(i) for i in range(1, len(source_map) + 1))]

        assert lines[0] == ("main.asm", 1)
        assert lines[1] == ("b.asm", 1)
        assert lines[2] == ("b.asm", 2)
        # 'c' is output line 5 and source line 3 of main.asm
        assert lines[4] == ("main.asm", 3)

    def test_nested_include(self, tmp_path):
        """Includes resolve relative to the including file."""
        write(tmp_path, "lib/inner.asm", "inner\n")
        write(tmp_path, "lib/outer.asm", '#include "inner.asm"\nouter\n')
        main = write(tmp_path, "main.asm", '#include "lib/outer.asm"\nmain\n')

        result = preprocess_file(main)

        assert result.text.split() == ["inner", "outer", "main"]
        names = [Path(f).name for f in result.source_map.filenames]
        assert names == ["main.asm", "outer.asm", "inner.asm"]

    def test_include_path_option(self, tmp_path):
        """Configured include paths are searched."""
        write(tmp_path, "inc/defs.asm", "mov sp, 0xFF\n")
        main = write(tmp_path, "src/main.asm", '#include "defs.asm"\nret\n')

        with pytest.raises(IncludeError):
            preprocess_file(main)

        result = preprocess_file(main, include_paths=[tmp_path / "inc"])
        assert "mov sp, 0xFF" in result.text

    def test_missing_include(self, tmp_path):
        """A missing file reports where it was searched for."""
        main = write(tmp_path, "main.asm", 'ret\n#include "nope.asm"\n')

        with pytest.raises(IncludeError) as exc_info:
            preprocess_file(main)

        error = exc_info.value
        assert "file not found" in error.message
        assert error.location.line == 2
        assert error.hint.startswith("searched in:")

    def test_circular_include(self, tmp_path):
        write(tmp_path, "a.asm", '#include "b.asm"\n')
        write(tmp_path, "b.asm", '#include "a.asm"\n')

        with pytest.raises(IncludeError, match="circular include detected"):
            preprocess_file(tmp_path / "a.asm")

    def test_self_include(self, tmp_path):
        main = write(tmp_path, "main.asm", '#include "main.asm"\n')
        with pytest.raises(IncludeError, match="circular"):
            preprocess_file(main)

    def test_same_file_twice_is_not_a_cycle(self, tmp_path):
        write(tmp_path, "b.asm", "ret")
        main = write(tmp_path, "main.asm", '#include "b.asm"\n#include "b.asm"\n')
        assert preprocess_file(main).text.split() == ["ret", "ret"]

    def test_depth_limit(self):
        """Deep include chains stop at MAX_INCLUDE_DEPTH."""
        files = {
            f"f{i}.asm": f'#include "f{i + 1}.asm"\n'
            for i in range(MAX_INCLUDE_DEPTH + 5)
        }
        with pytest.raises(IncludeError, match="nested deeper"):
            preprocess('#include "f0.asm"\n', "main.asm", loader=MemoryLoader(files))

    def test_custom_loader(self):
        """Includes go through the loader."""
        loader = MemoryLoader({"lib": "ret\n"})
        result = preprocess('#include "lib"\nhlt', "main.asm", loader=loader)
        assert result.text == "ret\n\nhlt"
        assert result.source_map.filenames == ["main.asm", "lib"]

    @pytest.mark.parametrize("line", [
        "#include",
        "#include lib.asm",
        '#include "a.asm" "b.asm"',
    ])
    def test_include_arity(self, line):
        with pytest.raises(DirectiveError, match="exactly one string parameter"):
            flatten(line)

    def test_lex_error_in_included_file(self):
        """Errors in an included file name that file."""
        loader = MemoryLoader({"bad.asm": 'ret\n.db "open\n'})
        with pytest.raises(LexError) as exc_info:
            preprocess('#include "bad.asm"\n', "main.asm", loader=loader)
        assert exc_info.value.location.filename == "bad.asm"
        assert exc_info.value.location.line == 2

    def test_error_names_include_site(self):
        """An error in an included file notes the #include that pulled it in."""
        loader = MemoryLoader({"b.asm": 'x\n"open\n'})
        with pytest.raises(LexError) as exc_info:
            preprocess('ret\n#include "b.asm"\n', "main.asm", loader=loader)

        error = exc_info.value
        assert error.location.filename == "b.asm"
        assert error.location.line == 2
        assert error.included_from == [SourceLocation("main.asm", 2)]
        assert str(error).endswith("note: included from main.asm:2")

    def test_error_names_full_include_chain(self):
        """Each enclosing #include is listed, innermost first."""
        loader = MemoryLoader({
            "outer.asm": 'ret\n\n#include "inner.asm"\n',
            "inner.asm": 'hlt\n"open',
        })
        with pytest.raises(LexError) as exc_info:
            preprocess('#include "outer.asm"\n', "main.asm", loader=loader)

        error = exc_info.value
        assert error.location.filename == "inner.asm"
        assert error.included_from == [
            SourceLocation("outer.asm", 3),
            SourceLocation("main.asm", 1),
        ]
        assert str(error).splitlines()[-2:] == [
            "note: included from outer.asm:3",
            "note: included from main.asm:1",
        ]

    def test_nested_include_error_names_include_site(self):
        """A failed #include inside an included file keeps the chain too."""
        loader = MemoryLoader({"b.asm": 'ret\n#include "gone.asm"\n'})
        with pytest.raises(IncludeError) as exc_info:
            preprocess('#include "b.asm"\n', "main.asm", loader=loader)

        assert str(exc_info.value.location) == "b.asm:2"
        assert exc_info.value.included_from == [SourceLocation("main.asm", 1)]

    def test_top_level_error_has_no_include_sites(self):
        with pytest.raises(LexError) as exc_info:
            flatten('ret\n"open')
        assert exc_info.value.included_from == []
        assert "note:" not in str(exc_info.value)


# =============================================================================
# Macros
# =============================================================================

class TestMacros:
    """Test #define, #undef and substitution."""

    def test_substitution(self):
        assert flatten("#define ONE 1\nmov ac, ONE") == "\nmov ac, 1"

    def test_multi_token_body(self):
        assert flatten("#define IDX (ac + IX)\nmov br, IDX") == "\nmov br, (ac + IX)"

    def test_empty_body(self):
        assert flatten("#define NOTHING\nret NOTHING") == "\nret "

    def test_nested_expansion(self):
        assert flatten("#define A B\n#define B 2\nmov ac, A") == "\n\nmov ac, 2"

    def test_self_reference(self):
        """A macro is not expanded inside its own body."""
        assert flatten("#define X X+1\nmov ac, X") == "\nmov ac, X+1"

    def test_mutual_reference(self):
        assert flatten("#define A B\n#define B A\nmov ac, A") == "\n\nmov ac, A"

    def test_only_whole_words(self):
        """Substitution matches whole words only."""
        assert flatten("#define X 1\nmov ac, XY") == "\nmov ac, XY"

    def test_strings_not_substituted(self):
        assert flatten('#define X 1\n.db "X"') == '\n.db "X"'

    def test_undef(self):
        assert flatten("#define X 1\n#undef X\nmov ac, X") == "\n\nmov ac, X"

    def test_predefined(self):
        assert flatten("mov ac, LIMIT", defines={"LIMIT": "0x10"}) == "mov ac, 0x10"

    def test_redefine_warns(self, caplog):
        """Redefinition overwrites and warns."""
        with caplog.at_level(logging.WARNING):
            result = preprocess("#define X 1\n#define X 2\nmov ac, X", "main.asm")

        assert result.text.endswith("mov ac, 2")
        assert len(result.warnings) == 1
        assert "macro 'X' redefined" in result.warnings[0]
        assert "main.asm:1" in result.warnings[0]
        assert "redefined" in caplog.text

    def test_define_traced_at_debug(self, caplog):
        """Each #define is logged with its replacement text."""
        with caplog.at_level(logging.DEBUG, logger="basm.preprocessor.parser"):
            preprocess("ret\n#define STACK_TOP 0xFF00\n", "main.asm")

        assert "Defined STACK_TOP = '0xFF00' at main.asm:2" in caplog.text

    def test_undef_unknown_only_warns(self, caplog):
        """#undef of a name never defined is a warning, not an error."""
        with caplog.at_level(logging.WARNING):
            result = preprocess("#define X\n#undef Y\nret", "main.asm")

        assert result.text == "\n\nret"
        assert result.warnings == ["main.asm:2: warning: #undef of unknown macro 'Y'"]
        assert "#undef of unknown macro 'Y'" in caplog.text

    def test_include_sees_includer_macros(self):
        loader = MemoryLoader({"lib": "mov ac, X\n"})
        result = preprocess('#define X 7\n#include "lib"\n', "main.asm", loader=loader)
        assert "mov ac, 7" in result.text

    def test_include_definitions_do_not_leak(self):
        """Definitions inside an included file stay there."""
        loader = MemoryLoader({"lib": "#define Y 5\n"})
        result = preprocess('#include "lib"\nmov ac, Y', "main.asm", loader=loader)
        assert result.text.endswith("mov ac, Y")

    def test_include_warnings_collected(self):
        loader = MemoryLoader({"lib": "#undef Q\n"})
        result = preprocess('#include "lib"\n', "main.asm", loader=loader)
        assert result.warnings == ["lib:1: warning: #undef of unknown macro 'Q'"]

    @pytest.mark.parametrize("line, message", [
        ("#define", "expects a macro name"),
        ("#define 12 x", "must be an identifier"),
        ('#define "s" x', "must be an identifier"),
        ("#undef", "exactly one macro name"),
        ("#undef A B", "exactly one macro name"),
    ])
    def test_directive_errors(self, line, message):
        with pytest.raises(DirectiveError, match=message):
            flatten(line)

    def test_directive_error_location(self):
        with pytest.raises(DirectiveError) as exc_info:
            flatten("ret\nret\n#undef")
        assert exc_info.value.location.filename == "main.asm"
        assert exc_info.value.location.line == 3


class TestMacroTable:
    """Test the MacroTable container."""

    def test_define_returns_previous(self):
        table = MacroTable()
        assert table.define_text("A", "1") is None
        previous = table.define_text("A", "2")
        assert previous.text == "1"
        assert table.get("A").text == "2"

    def test_copy_is_independent(self):
        table = MacroTable()
        table.define_text("A", "1")
        clone = table.copy()
        clone.undefine("A")
        assert "A" in table
        assert "A" not in clone

    def test_parser_copies_table(self):
        """A Parser never mutates the table it was given."""
        table = MacroTable()
        Parser(tokenize("#define Z 1\n"), macros=table).parse()
        assert len(table) == 0
