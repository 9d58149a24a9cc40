"""Statement executor.

The executor walks the AST depth first, in source order, and applies
each statement to its World. Branch bodies are run through an explicit
stack of frames instead of Python recursion, so nesting depth is only
limited by memory.

Writes inside a branch body
---------------------------
A branch watches one variable. While its body runs, a `let` of that
variable is staged in the delta of the innermost open branch watching
it, and only reaches the World when the branch is merged. A `let` of
any other variable commits directly. `input`, `listpush` and
`setinsert` always commit directly, and `print` always reads the World.
Setting `stage_writes=False` makes `let` commit directly too, in which
case branches never carry a delta and merging only advances
generations.
"""

__all__ = ["Executor", "ExecutionFrame", "run"]

import logging
import sys

import bramble
from bramble import ast

logger = logging.getLogger(__name__)


class Executor:
    """Executor and state for bramble programs.

    Each executor owns its World, so independent executors never share
    state.

    Args:
        world: (World | None) Namespace to run against, a new one if None
        stdin: (file | None) Source of lines for `input`, sys.stdin if None
        stdout: (file | None) Destination for `print`, sys.stdout if None
        stage_writes: (bool) Stage `let` of a watched variable in its branch
        trace: (callable | None) Called as trace(node, depth) before each
            statement runs

    Attributes:
        world: (World) Committed state
        arena: (BranchArena) Live branch records
        registry: (dict) Variable name to index of its closed, unmerged branch
        outcomes: (list[MergeOutcome]) Every merge outcome so far
    """

    def __init__(self, world=None, *, stdin=None, stdout=None,
                 stage_writes=True, trace=None):
        self.world = world if world is not None else bramble.World()
        self.arena = bramble.BranchArena()
        self.registry = {}
        self.outcomes = []
        self.stdin = stdin
        self.stdout = stdout
        self.stage_writes = stage_writes
        self.trace = trace
        self._frames = []

    def __repr__(self):
        return f"Executor<{len(self.registry)} unmerged>"

    def run(self, program):
        """Execute a program.

        Branches that are still unmerged when the program ends are
        discarded.

        Args:
            program: (ast.Program | Iterable[ast.Node]) Statements to run
        Returns:
            (World) The world after execution
        """
        if isinstance(program, ast.Program):
            program = program.kids
        self._frames = [ExecutionFrame(program)]
        try:
            while self._frames:
                frame = self._frames[-1]
                node = next(frame.statements, None)
                if node is None:
                    self._frames.pop()
                    if frame.branch is not None:
                        self._close_branch(frame.branch)
                    continue
                if self.trace is not None:
                    self.trace(node, len(self._frames) - 1)
                self._execute(node)
        finally:
            # Only left over when a statement raised
            while self._frames:
                branch = self._frames.pop().branch
                if branch is not None:
                    self.arena.discard(branch.index)
            self._discard_unmerged()
        return self.world

    def _execute(self, node):
        match node:
            case ast.Let():
                self._let(node.name, node.value)
            case ast.Branch():
                self._open_branch(node)
            case ast.Merge():
                self.merge(node.variable)
            case ast.Print():
                self._print(node)
            case ast.Input():
                self._input(node)
            case ast.ListPush():
                current = self.world.get(node.variable)
                if current is None or not current.is_list:
                    logger.debug(
                        "listpush ignored, %s is not a list: %r",
                        node.variable, current)
                    return
                self.world.set(node.variable, current.push(node.value))
            case ast.SetInsert():
                current = self.world.get(node.variable)
                if current is None or not current.is_set:
                    logger.debug(
                        "setinsert ignored, %s is not a set: %r",
                        node.variable, current)
                    return
                self.world.set(node.variable, current.insert(node.value))
            case _:
                raise bramble.EvalError(f"Unknown statement node {node!r}")

    def merge(self, variable):
        """Merge the branch registered for variable.

        Merging a name with no registered branch does nothing.

        Args:
            variable: (str) Name the branch was registered under
        Returns:
            (list[MergeOutcome]) Outcomes for the branch and its nested
            branches, empty when nothing was registered
        """
        index = self.registry.pop(variable, None)
        if index is None:
            logger.debug("merge ignored, no branch registered for %s", variable)
            return []
        outcomes = self.arena.merge(index, self.world)
        self.outcomes.extend(outcomes)
        return outcomes

    def _open_branch(self, node):
        generation = self.world.get_generation(node.variable)
        branch = self.arena.open(node.variable, generation)
        self._frames.append(ExecutionFrame(node.body, branch))

    def _close_branch(self, branch):
        """Collect nested branches and register a finished branch."""
        # Registered after this branch opened means opened inside its body
        nested = {
            name: index
            for name, index in self.registry.items()
            if index > branch.index
        }
        for name in nested:
            del self.registry[name]
        self.arena.adopt(branch.index, nested.values())

        previous = self.registry.get(branch.variable)
        if previous is not None:
            dropped = self.arena.discard(previous)
            logger.debug(
                "Replaced unmerged branch for %s, dropped %d records",
                branch.variable, dropped)
        self.registry[branch.variable] = branch.index
        logger.debug("Registered %r with %d nested", branch, len(nested))

    def _discard_unmerged(self):
        for name, index in self.registry.items():
            dropped = self.arena.discard(index)
            logger.debug(
                "Discarded unmerged branch for %s, %d records", name, dropped)
        self.registry.clear()

    def _let(self, name, value):
        branch = self._staging_branch(name)
        if branch is None:
            self.world.set(name, value)
            return
        branch.delta = value
        logger.debug("Staged %s=%s in %r", name, value.format(), branch)

    def _staging_branch(self, name):
        """Innermost open branch watching name, if `let` is staged."""
        if not self.stage_writes:
            return None
        for frame in reversed(self._frames):
            if frame.branch is not None and frame.branch.variable == name:
                return frame.branch
        return None

    def _print(self, node):
        if node.variable is None:
            text = node.value.format()
        else:
            value = self.world.get(node.variable)
            if value is None:
                text = f"(undefined variable {node.variable})"
            else:
                text = value.format()
        out = self.stdout if self.stdout is not None else sys.stdout
        out.write(text + "\n")

    def _input(self, node):
        if node.prompt is not None:
            out = self.stdout if self.stdout is not None else sys.stdout
            out.write(node.prompt)
            out.flush()
        source = self.stdin if self.stdin is not None else sys.stdin
        # End of input reads as an empty line
        line = source.readline()
        self.world.set(node.variable, bramble.Value.from_python(line.strip()))


class ExecutionFrame:
    """Runtime frame for one block of statements.

    Attributes:
        statements: (iterator) Remaining statements of the block
        branch: (Branch | None) Branch whose body this is, None at top level
    """

    __slots__ = ("statements", "branch")

    def __init__(self, statements, branch=None):
        self.statements = iter(statements)
        self.branch = branch

    def __repr__(self):
        return f"ExecutionFrame<{self.branch!r}>"


def run(source, **options):
    """Parse and execute source text.

    Args:
        source: (str) Bramble source code
        **options: Keyword arguments passed to Executor
    Returns:
        (Executor) The executor, holding the final world
    Raises:
        ParseError: If the source is not valid bramble
    """
    program = bramble.parse(source)
    executor = Executor(**options)
    executor.run(program)
    return executor
