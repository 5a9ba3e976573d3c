"""Tolerant JSON reader tests"""

import json

import pytest

from codeforge_debug.debug import jsonc


class TestStripComments:

    def test_line_and_block_comments(self):
        text = '{\n  // editor settings\n  "a": 1, /* inline */ "b": 2\n}'
        assert jsonc.loads(text) == {"a": 1, "b": 2}

    def test_slashes_inside_strings_are_kept(self):
        text = '{"url": "http://localhost:2000", "glob": "src/*.c"} // trailing'
        assert jsonc.loads(text) == {"url": "http://localhost:2000", "glob": "src/*.c"}

    def test_escaped_quote_does_not_end_string(self):
        text = '{"cmd": "echo \\"// not a comment\\""}'
        assert jsonc.loads(text) == {"cmd": 'echo "// not a comment"'}

    def test_block_comment_keeps_line_numbers(self):
        stripped = jsonc.strip_comments('/* one\ntwo\nthree */{}')
        assert stripped == "\n\n{}"

    def test_unterminated_block_comment_runs_to_end(self):
        assert jsonc.strip_comments('{} /* never closed') == "{} "


COMMENT_FREE_DOCUMENTS = [
    "{}",
    "[]",
    '{"url": "http://localhost:2000//x"}',
    '{"glob": "src/*.c", "end": "*/", "both": "/* not a comment */"}',
    '{"quote": "say \\"//hi\\"", "slash": "C:\\\\work\\\\"}',
    '{"a": [1, [2, {"b": [null, true, false]}], {"c": {"d": "//"}}]}',
    '{\n  "version": "0.2.0",\n  "configurations": [\n    {"name": "x", "target": ":54321"}\n  ]\n}',
]


@pytest.mark.parametrize("document", COMMENT_FREE_DOCUMENTS)
def test_comment_free_json_unchanged(document):
    assert json.loads(jsonc.strip_comments(document)) == json.loads(document)


class TestTrailingCommas:

    def test_trailing_commas_dropped(self):
        text = '{"configurations": [{"name": "a",},\n],}'
        assert jsonc.loads(text) == {"configurations": [{"name": "a"}]}

    def test_commas_in_strings_kept(self):
        assert jsonc.loads('{"a": "x,}"}') == {"a": "x,}"}


class TestLoadsDumps:

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            jsonc.loads("{not json")

    def test_dumps_format(self):
        text = jsonc.dumps({"version": "0.2.0", "configurations": []})
        assert text == '{\n  "version": "0.2.0",\n  "configurations": []\n}\n'

    def test_dumps_keeps_unicode(self):
        assert "ü" in jsonc.dumps({"name": "Füzzer"})
