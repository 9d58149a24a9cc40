"""Shared namespace of committed variables."""

__all__ = ["World"]


class World:
    """Committed state for a running program.

    Maps variable names to their current Value, and keeps a generation
    counter for each name. Generations only ever move forward and are how
    branches detect that something else committed to a variable after
    they were opened.

    The World does no type checking and has no failure modes.

    Attributes:
        vars: (dict) Variable name to current Value
        generation: (dict) Variable name to generation counter
    """

    __slots__ = ("vars", "generation")

    def __init__(self):
        self.vars = {}
        self.generation = {}

    def __repr__(self):
        return f"World<{len(self.vars)} vars>"

    def get(self, name):
        """Current value bound to name, or None when unbound."""
        return self.vars.get(name)

    def get_generation(self, name):
        """Generation of name, names never seen are at generation 0."""
        return self.generation.get(name, 0)

    def set(self, name, value):
        """Overwrite the binding for name, leaving its generation alone."""
        self.vars[name] = value

    def advance_generation(self, name):
        """Move the generation of name forward by one."""
        self.generation[name] = self.generation.get(name, 0) + 1

    def snapshot(self):
        """Copy of the bindings and generations as plain dicts.

        Returns:
            (tuple) (vars, generation) dicts
        """
        return dict(self.vars), dict(self.generation)

    def format(self):
        """Render the whole namespace for diagnostic output."""
        bindings = ", ".join(
            f"{name}={value.format()}" for name, value in sorted(self.vars.items())
        )
        generations = ", ".join(
            f"{name}={gen}" for name, gen in sorted(self.generation.items())
        )
        return f"World(vars={{{bindings}}}, generation={{{generations}}})"
