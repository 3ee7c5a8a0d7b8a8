import pytest

from tmplzap.compile import CompileError, compile_tree_set
from tmplzap.parser import parse

CHAIN = (
    '{{define "t1"}}foo-{{block "b1"}}t1b1-{{end}}bar{{end}}'
    '{{define "t2" "t1"}}{{block "b1"}}t2b1-{{block "b2"}}t2b2-{{end}}{{end}}{{end}}'
    '{{define "t3" "t2"}}{{block "b2"}}t3b2-{{end}}{{end}}'
)


def _compiled(text):
    trees = parse(text, "root", "", "")
    compile_tree_set(trees)
    return trees


def test_inherited_templates_render_overridden_blocks():
    trees = _compiled(CHAIN)
    assert str(trees["t1"].root.body) == "foo-t1b1-bar"
    assert str(trees["t2"].root.body) == "foo-t2b1-t2b2-bar"
    assert str(trees["t3"].root.body) == "foo-t2b1-t3b2-bar"


def test_compiled_trees_have_no_parents_or_blocks():
    trees = _compiled(CHAIN)
    for name in ("t1", "t2", "t3"):
        root = trees[name].root
        assert root.parent == ""
        assert root.name == name
        assert "{{block" not in str(root)


def test_missing_parent_is_an_error():
    trees = parse('{{define "child" "nowhere"}}{{end}}', "root", "", "")
    with pytest.raises(CompileError, match='template not found: "nowhere"'):
        compile_tree_set(trees)


def test_recursive_inheritance_is_an_error():
    trees = parse('{{define "a" "b"}}{{end}}{{define "b" "a"}}{{end}}', "root", "", "")
    with pytest.raises(CompileError, match="impossible recursion"):
        compile_tree_set(trees)


def test_compiling_twice_changes_nothing():
    trees = _compiled(CHAIN)
    first = {name: str(tree.root) for name, tree in trees.items()}
    compile_tree_set(trees)
    assert {name: str(tree.root) for name, tree in trees.items()} == first


def test_override_of_unknown_block_is_ignored():
    trees = _compiled(
        '{{define "base"}}a{{block "x"}}b{{end}}c{{end}}'
        '{{define "kid" "base"}}{{block "y"}}zzz{{end}}{{end}}'
    )
    assert str(trees["kid"].root.body) == str(trees["base"].root.body)
    assert "zzz" not in str(trees["kid"].root)


def test_blocks_inside_branches_are_flattened():
    trees = _compiled('{{define "a"}}{{if .X}}{{block "b"}}inner{{end}}{{end}}{{end}}')
    text = str(trees["a"].root)
    assert "{{block" not in text
    assert "inner" in text
    assert text.startswith('{{define "a"}}{{if .X}}')


def test_parent_is_not_modified_by_child():
    trees = _compiled(CHAIN)
    assert "t2b1" not in str(trees["t1"].root)