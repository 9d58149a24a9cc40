"""Test executing programs against the world"""

import io
import logging

import pytest

import bramble
import bramtest
from bramble import ast
from bramtest import output, run, value


def test_branch_merge_scenario():
    executor, lines = run("""
        let x = 1;
        branch x { let x = 2; }
        print x;
        merge x;
        print x;
    """)
    assert lines == ["1", "2"]
    assert executor.world.get("x") == value(2)
    assert executor.world.get_generation("x") == 1


def test_world_untouched_before_merge():
    seen = []

    def trace(node, depth):
        if isinstance(node, ast.Merge):
            seen.append(executor.world.snapshot())

    executor = bramble.Executor(stdout=io.StringIO(), trace=trace)
    executor.run(bramble.parse("let x = 1; branch x { let x = 2; } merge x;"))
    assert seen == [({"x": value(1)}, {})]
    assert executor.world.snapshot() == ({"x": value(2)}, {"x": 1})


def test_stale_merge_is_ignored():
    executor, lines = run("""
        let x = 1;
        branch x {
            let x = 2;
            branch x { let x = 3; }
            merge x;
        }
        merge x;
        print x;
    """)
    assert lines == ["3"]
    assert executor.world.get_generation("x") == 1
    assert [(o.variable, o.status) for o in executor.outcomes] == [
        ("x", "applied"),
        ("x", "stale"),
    ]


def test_nested_composition():
    executor, lines = run("""
        let x = 1;
        let y = 10;
        branch x {
            let x = 2;
            branch y { let y = 20; }
        }
        print y;
        merge x;
        print x;
        print y;
    """)
    assert lines == ["10", "2", "20"]
    assert executor.world.get_generation("x") == 1
    assert executor.world.get_generation("y") == 1


def test_nested_branch_not_registered_after_close():
    lines = output("""
        branch x { branch y { let y = 1; } }
        merge y;
        print y;
        merge x;
        print y;
    """)
    assert lines == ["(undefined variable y)", "1"]


def test_earlier_branch_not_nested():
    lines = output("""
        branch y { let y = 1; }
        branch x { let x = 1; }
        merge y;
        print y;
        print x;
    """)
    assert lines == ["1", "(undefined variable x)"]


def test_print_reads_world():
    executor, lines = run("""
        let x = 1;
        branch x {
            let x = 2;
            print x;
        }
        print x;
    """)
    assert lines == ["1", "1"]
    assert executor.world.get("x") == value(1)
    assert executor.world.get_generation("x") == 0


def test_innermost_branch_stages():
    executor, lines = run("""
        branch x {
            branch x { let x = 3; }
            merge x;
            print x;
        }
    """)
    assert lines == ["3"]
    assert executor.world.get_generation("x") == 1


def test_other_variables_commit_directly():
    executor, lines = run("""
        branch x { let y = 5; print y; }
        print y;
    """)
    assert lines == ["5", "5"]
    assert executor.world.get_generation("y") == 0


def test_unmerged_branches_discarded():
    executor, lines = run("""
        let x = 1;
        branch x { let x = 2; branch z { let z = 1; } }
        branch y { }
    """)
    assert executor.world.get("x") == value(1)
    assert executor.registry == {}
    assert len(executor.arena) == 0


def test_registration_replaces():
    executor, lines = run("""
        let x = 0;
        branch x { let x = 1; }
        branch x { let x = 2; }
        merge x;
        print x;
        merge x;
        print x;
    """)
    assert lines == ["2", "2"]
    assert executor.world.get_generation("x") == 1


def test_merge_without_branch():
    executor, lines = run("merge nothing; print 1;")
    assert lines == ["1"]
    assert executor.world.snapshot() == ({}, {})


def test_empty_branch_advances_generation():
    executor, lines = run("let x = 1; branch x { } merge x; print x;")
    assert lines == ["1"]
    assert executor.world.get_generation("x") == 1
    assert executor.outcomes[0].status == "advanced"


@bramtest.params(
    "source expected",
    int=("print 42", "42"),
    float=("print -1.5", "-1.5"),
    string=('print "hi"', '"hi"'),
    bool=("print true", "true"),
    list=("print [1, [2]]", "[1, [2]]"),
    set=("print {3, 3}", "{3}"),
    undefined=("print ghost", "(undefined variable ghost)"),
    variable=("let v = {}; print v", "{}"),
)
def test_print(key, source, expected):
    assert output(source) == [expected]


class TestCollections:
    def test_listpush(self):
        executor, lines = run("let l = [1]; listpush l 2; listpush l [3]; print l;")
        assert lines == ["[1, 2, [3]]"]
        assert executor.world.get_generation("l") == 0

    def test_setinsert(self):
        lines = output("let s = {1}; setinsert s 2; setinsert s 1; print s;")
        assert lines == ["{1, 2}"]

    @bramtest.params(
        "source expected",
        push_unbound=("listpush nope 1; print nope", "(undefined variable nope)"),
        push_set=("let nope = {1}; listpush nope 2; print nope", "{1}"),
        push_int=("let nope = 1; listpush nope 2; print nope", "1"),
        insert_unbound=("setinsert nope 1; print nope", "(undefined variable nope)"),
        insert_list=("let nope = [1]; setinsert nope 2; print nope", "[1]"),
    )
    def test_wrong_kind_ignored(self, key, source, expected):
        executor, lines = run(source)
        assert lines == [expected]
        assert executor.world.get_generation("nope") == 0

    def test_previous_value_kept(self, executor):
        executor.run(bramble.parse("let l = [1];"))
        handle = executor.world.get("l")
        executor.run(bramble.parse("listpush l 2;"))
        assert handle == value([1])
        assert executor.world.get("l") == value([1, 2])

    def test_print_before_push(self):
        lines = output("let l = []; print l; listpush l 1; print l;")
        assert lines == ["[]", "[1]"]

    def test_push_commits_in_branch(self):
        executor, lines = run("""
            let l = [1];
            branch l { listpush l 2; print l; }
            print l;
            merge l;
            print l;
        """)
        assert lines == ["[1, 2]", "[1, 2]", "[1, 2]"]
        assert executor.outcomes[0].status == "advanced"

    @bramtest.params(
        "source name expected",
        listpush=("let c = [1]; branch c { listpush c 2; }", "c", [1, 2]),
        setinsert=("let c = {1}; branch c { setinsert c 2; }", "c", {1, 2}),
        other=("let c = [1]; branch d { listpush c 2; }", "c", [1, 2]),
    )
    def test_unmerged_branch_keeps_update(self, key, source, name, expected):
        executor, lines = run(source)
        assert executor.world.get(name) == value(expected)
        assert executor.world.get_generation(name) == 0

    def test_push_ignores_staged_let(self):
        executor, lines = run("""
            let l = [1];
            branch l { let l = [9]; listpush l 2; }
            print l;
            merge l;
            print l;
        """)
        assert lines == ["[1, 2]", "[9]"]


class TestSharedWrites:
    """Writes inside branches commit immediately when staging is off."""

    def test_let_commits(self):
        executor, lines = run(
            "let x = 1; branch x { let x = 2; } print x; merge x; print x;",
            stage_writes=False)
        assert lines == ["2", "2"]
        assert executor.world.get_generation("x") == 1
        assert executor.outcomes[0].status == "advanced"

    def test_generation_still_checked(self):
        executor, lines = run("""
            branch x { branch x { } merge x; }
            merge x;
        """, stage_writes=False)
        assert [o.status for o in executor.outcomes] == ["advanced", "stale"]
        assert executor.world.get_generation("x") == 1


class TestInput:
    def test_prompt(self):
        executor, lines = run('input "Name? " name; print name;', stdin="  bob \n")
        assert lines == ['Name? "bob"']
        assert executor.world.get("name") == value("bob")

    def test_no_prompt(self):
        lines = output("input a; input b; print b; print a;", stdin="one\ntwo\n")
        assert lines == ['"two"', '"one"']

    def test_end_of_input(self):
        executor, lines = run("input a;")
        assert executor.world.get("a") == value("")

    def test_commits_in_branch(self):
        executor, lines = run(
            'let a = "old"; branch a { input a; } print a;', stdin="new\n")
        assert lines == ['"new"']
        assert executor.world.get("a") == value("new")
        assert executor.world.get_generation("a") == 0


def test_deep_nesting():
    depth = 5000
    node = ast.Let(f"v{depth - 1}", value(1))
    for i in reversed(range(depth)):
        node = ast.Branch(f"v{i}", [node])
    program = ast.Program([node, ast.Merge("v0"), ast.Print(variable=f"v{depth - 1}")])

    out = io.StringIO()
    executor = bramble.Executor(stdout=out)
    executor.run(program)

    assert out.getvalue() == "1\n"
    assert len(executor.outcomes) == depth


def test_statement_list():
    out = io.StringIO()
    executor = bramble.Executor(stdout=out)
    executor.run([ast.Let("x", value(1)), ast.Print(variable="x")])
    assert out.getvalue() == "1\n"


def test_trace():
    calls = []
    executor = bramble.Executor(
        stdout=io.StringIO(),
        trace=lambda node, depth: calls.append((type(node).__name__, depth)))
    executor.run(bramble.parse("branch x { print 1; branch y { } } merge x;"))
    assert calls == [("Branch", 0), ("Print", 1), ("Branch", 1), ("Merge", 0)]


def test_unknown_statement():
    executor = bramble.Executor(stdout=io.StringIO())
    with pytest.raises(bramble.EvalError):
        executor.run([ast.Branch("x", [object()])])
    assert len(executor.arena) == 0
    assert executor.registry == {}


def test_independent_executors():
    first, _ = run("let x = 1; branch x { } merge x;")
    second, _ = run("print x;")
    assert first.world is not second.world
    assert second.world.get("x") is None


def test_merge_api(executor):
    executor.registry["x"] = executor.arena.open("x", 0).index
    assert [o.status for o in executor.merge("x")] == ["advanced"]
    assert executor.merge("x") == []


def test_diagnostics_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="bramble")
    run("""
        branch x { branch x { } merge x; }
        merge x;
        listpush x 1;
        merge y;
    """)
    assert "Stale" in caplog.text
    assert "listpush ignored" in caplog.text
    assert "no branch registered for y" in caplog.text
