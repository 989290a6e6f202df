"""Tests for the modification parser."""
from coder_cli.executor.models import ModificationMethod, ModificationType
from coder_cli.executor.parser import parse_modifications


def test_fenced_block_with_path_is_update():
    mods = parse_modifications("```src/a.ts\nconsole.log(1)\n```")

    assert len(mods) == 1
    assert mods[0].type == ModificationType.UPDATE
    assert mods[0].method == ModificationMethod.REPLACE
    assert mods[0].file_path == "src/a.ts"
    assert mods[0].content == "console.log(1)\n"


def test_create_directive():
    mods = parse_modifications('Create file "new.txt" with content:\n```\nhello\n```')

    assert len(mods) == 1
    assert mods[0].type == ModificationType.CREATE
    assert mods[0].file_path == "new.txt"
    assert mods[0].content == "hello\n"


def test_create_directive_with_language_tag_matches_both_rules():
    text = 'create FILE "app.py" with content:\n```python\nprint(1)\n```'
    mods = parse_modifications(text)

    assert [(m.type, m.file_path) for m in mods] == [
        (ModificationType.UPDATE, "python"),
        (ModificationType.CREATE, "app.py"),
    ]
    assert mods[1].content == "print(1)\n"


def test_delete_directive():
    mods = parse_modifications('Delete file "old.txt"')

    assert len(mods) == 1
    assert mods[0].type == ModificationType.DELETE
    assert mods[0].file_path == "old.txt"
    assert mods[0].content is None


def test_directive_keywords_are_case_insensitive_paths_are_not():
    mods = parse_modifications('DELETE FILE "Old.TXT"')
    assert mods[0].file_path == "Old.TXT"


def test_multiple_blocks_keep_order_and_body_whitespace():
    text = (
        "First:\n```a.py\n  x = 1\n\n```\n"
        "Then:\n```dir/b-c_d.js\nlet y;\n```\n"
        'And Delete file "gone.md" please.'
    )
    mods = parse_modifications(text)

    assert [m.file_path for m in mods] == ["a.py", "dir/b-c_d.js", "gone.md"]
    assert mods[0].content == "  x = 1\n\n"


def test_plain_fence_and_prose_produce_nothing():
    assert parse_modifications("No code here.") == []
    assert parse_modifications("```\nanonymous\n```") == []
