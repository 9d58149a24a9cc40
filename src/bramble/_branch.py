"""Speculative branches and the merge protocol.

A branch watches a single variable. When it is opened it records the
generation of that variable, and it may hold a pending replacement value
(the delta). Branches opened while another branch's body runs become its
children.

Merging a branch commits it only when the watched variable is still at
the recorded generation. A branch that is out of date is stale, and it is
thrown away along with all of its children without touching the World.
A fresh branch writes its delta (if any), advances the generation of its
variable, and then merges each child in the order they were opened. Each
child does its own stale check, so nested branches on different variables
succeed or fail independently.

Branch records live in a `BranchArena` and refer to each other by index.
Indices are handed out in increasing order, so the index order is the
order branches were opened. Merging and discarding walk the tree with an
explicit stack, so deep nesting never runs into the Python recursion
limit.
"""

__all__ = ["Branch", "BranchArena", "MergeOutcome"]

import collections
import logging

import bramble

logger = logging.getLogger(__name__)


MergeOutcome = collections.namedtuple("MergeOutcome", "variable status")
MergeOutcome.__doc__ = """Result of merging one branch record.

status is "applied" when the delta was written, "advanced" when there was
no delta and only the generation moved, and "stale" when the branch was
discarded.
"""


class Branch:
    """A speculative change record for one variable.

    Args:
        index: (int) Arena index, also the opening order
        variable: (str) Name of the watched variable
        generation: (int) Generation of the variable when opened

    Attributes:
        index: (int) Arena index, also the opening order
        variable: (str) Name of the watched variable
        generation: (int) Generation of the variable when opened
        delta: (Value | None) Pending replacement value
        parent: (int | None) Index of the parent branch
        children: (list[int]) Indices of nested branches in opening order
    """

    __slots__ = ("index", "variable", "generation", "delta", "parent", "children")

    def __init__(self, index, variable, generation):
        self.index = index
        self.variable = variable
        self.generation = generation
        self.delta = None
        self.parent = None
        self.children = []

    def __repr__(self):
        delta = self.delta.format() if self.delta is not None else "-"
        return f"Branch<#{self.index} {self.variable}@{self.generation} {delta}>"


class BranchArena:
    """Owner of all live branch records for one executor.

    Records are created by `open` and leave the arena once they are
    merged or discarded.
    """

    def __init__(self):
        self.records = {}
        self._next = 0

    def __len__(self):
        return len(self.records)

    def __contains__(self, index):
        return index in self.records

    def __getitem__(self, index):
        try:
            return self.records[index]
        except KeyError:
            raise bramble.EvalError(f"No live branch with index {index}") from None

    def open(self, variable, generation):
        """Create a new branch record.

        Args:
            variable: (str) Name of the watched variable
            generation: (int) Current generation of the variable
        Returns:
            (Branch) The new record
        """
        branch = Branch(self._next, variable, generation)
        self._next += 1
        self.records[branch.index] = branch
        logger.debug("Opened %r", branch)
        return branch

    def adopt(self, parent, children):
        """Attach branch records as children of parent.

        Children are kept sorted by index, which keeps them in the order
        they were opened.

        Args:
            parent: (int) Index of the parent branch
            children: (Iterable[int]) Indices of the new children
        """
        branch = self[parent]
        for index in children:
            child = self[index]
            if child.parent is not None:
                raise bramble.EvalError(f"{child!r} already has a parent")
            child.parent = parent
            branch.children.append(index)
        branch.children.sort()

    def discard(self, index):
        """Drop a branch and its whole subtree without applying anything.

        Returns:
            (int) Number of records dropped
        """
        dropped = 0
        stack = [index]
        while stack:
            branch = self.records.pop(stack.pop())
            stack.extend(branch.children)
            dropped += 1
        return dropped

    def merge(self, index, world):
        """Run the merge protocol for a branch and its subtree.

        The branch leaves the arena whatever the outcome.

        Args:
            index: (int) Index of the branch to merge
            world: (World) Shared namespace to commit into
        Returns:
            (list[MergeOutcome]) One outcome per record visited, parents
            before children
        """
        if index not in self.records:
            raise bramble.EvalError(f"No live branch with index {index}")
        outcomes = []
        stack = [index]
        while stack:
            branch = self.records.pop(stack.pop())
            variable = branch.variable

            current = world.get_generation(variable)
            if current != branch.generation:
                dropped = 0
                for child in branch.children:
                    dropped += self.discard(child)
                logger.debug(
                    "Stale %r, generation is now %d, dropped %d nested",
                    branch, current, dropped)
                outcomes.append(MergeOutcome(variable, "stale"))
                continue

            if branch.delta is not None:
                world.set(variable, branch.delta)
                status = "applied"
            else:
                status = "advanced"
            world.advance_generation(variable)
            logger.debug("Merged %r (%s)", branch, status)
            outcomes.append(MergeOutcome(variable, status))

            # Reversed so the first opened child is merged first
            stack.extend(reversed(branch.children))

        return outcomes
