import pytest

from pkmntools.common import ToolError
from pkmntools.scan_includes import main, scan_file, scan_text


@pytest.fixture(autouse=True)
def _in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_include_is_listed():
    assert scan_text('INCLUDE "a.asm"\n') == ["a.asm"]


def test_incbin_is_listed():
    assert scan_text('\tINCBIN "gfx/font.2bpp"\n') == ["gfx/font.2bpp"]


def test_lowercase_keywords():
    assert scan_text('include "a.asm"\nincbin "b.bin"\n') == ["a.asm", "b.bin"]


def test_mixed_case_keyword_is_ignored():
    assert scan_text('Include "a.asm"\n') == []


def test_keyword_after_label_colon():
    assert scan_text('Label:INCLUDE "a.asm"\n') == ["a.asm"]


def test_keyword_inside_identifier_is_ignored():
    assert scan_text('XINCLUDE "a.asm"\n') == []


def test_keyword_must_end_as_token():
    assert scan_text('INCLUDEX "a.asm"\n') == []


def test_comment_is_skipped():
    assert scan_text('; INCLUDE "a.asm"\nINCBIN "b.bin"\n') == ["b.bin"]


def test_string_literal_is_skipped():
    assert scan_text('db "INCLUDE foo"\n') == []


def test_path_directly_after_keyword():
    assert scan_text('INCBIN"x.bin"') == ["x.bin"]


def test_unterminated_path_runs_to_end():
    assert scan_text('INCBIN "abc') == ["abc"]


def test_missing_path_warns(capsys):
    assert scan_text("INCLUDE foo\n", "main.asm") == []
    assert "main.asm: no file path after INCLUDE" in capsys.readouterr().err


def test_missing_path_then_comment_is_skipped(capsys):
    text = 'INCLUDE ; "\nINCLUDE "b.asm"\n'
    assert scan_text(text, "main.asm") == ["b.asm"]
    assert "no file path after INCLUDE" in capsys.readouterr().err


def test_missing_incbin_path_warns(capsys):
    assert scan_text("INCBIN\n", "x.asm") == []
    assert "x.asm: no file path after INCBIN" in capsys.readouterr().err


def test_includes_are_followed_recursively(_in_tmp):
    (_in_tmp / "main.asm").write_text('INCLUDE "a.asm"\nINCBIN "d.bin"\n')
    (_in_tmp / "a.asm").write_text('INCLUDE "b.asm"\n')
    (_in_tmp / "b.asm").write_text('INCBIN "c.bin"\n')
    assert scan_file("main.asm") == ["a.asm", "b.asm", "c.bin", "d.bin"]


def test_incbin_is_not_followed(_in_tmp):
    (_in_tmp / "main.asm").write_text('INCBIN "data.asm"\n')
    (_in_tmp / "data.asm").write_text('INCLUDE "never.asm"\n')
    assert scan_file("main.asm") == ["data.asm"]


def test_missing_file_is_quiet_without_strict():
    assert scan_file("nowhere.asm") == []


def test_missing_file_raises_with_strict():
    with pytest.raises(ToolError, match="nowhere.asm"):
        scan_file("nowhere.asm", strict=True)


def test_strict_missing_nested_include_raises(_in_tmp):
    (_in_tmp / "main.asm").write_text('INCLUDE "gone.asm"\n')
    with pytest.raises(ToolError, match="gone.asm"):
        scan_file("main.asm", strict=True)


def test_main_prints_paths(_in_tmp, capsys):
    (_in_tmp / "main.asm").write_text('INCLUDE "a.asm"\nINCBIN "b.bin"\n')
    assert main(["main.asm"]) == 0
    assert capsys.readouterr().out == "a.asm b.bin "


def test_main_strict_failure(capsys):
    assert main(["--strict", "nowhere.asm"]) == 1
    assert "scan_includes: Could not open file" in capsys.readouterr().err


def test_main_without_file_exits_with_usage(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    assert "Usage: scan_includes" in capsys.readouterr().err