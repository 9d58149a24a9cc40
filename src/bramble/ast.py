"""AST nodes handed from the parser to the executor.

Statements hold their literal operands as ready made Values. Block
statements (the program and branch bodies) keep their statements in
`kids`.
"""

__all__ = [
    "Node",
    "Program",
    "Let",
    "Branch",
    "Merge",
    "Print",
    "Input",
    "ListPush",
    "SetInsert",
]

import bramble


def _meta_position(meta):
    """Get (line, column) from lark metadata, if it has any."""
    if meta is None or getattr(meta, "empty", True):
        return (None, None)
    return (meta.line, meta.column)


class Node:
    """Base class for all AST nodes."""

    def __init__(self, kids: list["Node"] | None = None):
        """Initialize node.

        Args:
            kids: List of child statement nodes
        """
        self.kids = list(kids) if kids else []
        self.position = (None, None)

    def __repr__(self):
        """Compact representation showing type and key attributes."""
        attrs = []
        if self.kids:
            attrs.append(f"*{len(self.kids)}")
        for key, value in self.__dict__.items():
            if key not in ("kids", "position"):
                attrs.append(f"{key}={value!r}")
        return f"{self.__class__.__name__}({' '.join(attrs)})"

    def tree(self, indent=0, file=None):
        """Print tree structure."""
        print(f"{'  '*indent}{self!r}", file=file)
        for kid in self.kids:
            kid.tree(indent + 1, file=file)

    def find(self, node_type):
        """Find first descendant of given type, including self."""
        if isinstance(self, node_type):
            return self
        for kid in self.kids:
            if result := kid.find(node_type):
                return result
        return None

    def find_all(self, node_type) -> list["Node"]:
        """Find all descendants of given type, including self."""
        results = [self] if isinstance(self, node_type) else []
        for kid in self.kids:
            results.extend(kid.find_all(node_type))
        return results

    def unparse(self, indent: int = 0) -> str:
        """Convert back to bramble source text."""
        raise NotImplementedError(f"{self.__class__.__name__}.unparse()")

    @classmethod
    def fromLark(cls, meta, children):
        """Create node from a parsed grammar rule."""
        node = cls(*children)
        node.position = _meta_position(meta)
        return node


class Program(Node):
    """Root node, the ordered top level statements."""

    def __init__(self, statements: list[Node] | None = None):
        super().__init__(statements)

    @property
    def statements(self):
        return self.kids

    def unparse(self, indent: int = 0) -> str:
        return "".join(kid.unparse(indent) for kid in self.kids)

    @classmethod
    def fromLark(cls, meta, children):
        node = cls(children)
        node.position = _meta_position(meta)
        return node


class Let(Node):
    """Bind a literal value to a variable."""

    def __init__(self, name: str, value: "bramble.Value"):
        super().__init__()
        self.name = str(name)
        self.value = value

    def unparse(self, indent: int = 0) -> str:
        return f"{'  '*indent}let {self.name} = {self.value.format()};\n"


class Branch(Node):
    """Open a branch on a variable and run its body."""

    def __init__(self, variable: str, body: list[Node] | None = None):
        super().__init__(body)
        self.variable = str(variable)

    @property
    def body(self):
        return self.kids

    def unparse(self, indent: int = 0) -> str:
        pad = "  " * indent
        body = "".join(kid.unparse(indent + 1) for kid in self.kids)
        return f"{pad}branch {self.variable} {{\n{body}{pad}}}\n"

    @classmethod
    def fromLark(cls, meta, children):
        variable, *body = children
        node = cls(variable, body)
        node.position = _meta_position(meta)
        return node


class Merge(Node):
    """Merge the branch registered for a variable."""

    def __init__(self, variable: str):
        super().__init__()
        self.variable = str(variable)

    def unparse(self, indent: int = 0) -> str:
        return f"{'  '*indent}merge {self.variable};\n"


class Print(Node):
    """Print a variable or a literal value.

    Exactly one of variable and value is set.
    """

    def __init__(self, variable: str | None = None,
                 value: "bramble.Value | None" = None):
        super().__init__()
        if (variable is None) == (value is None):
            raise ValueError("Print needs exactly one of variable or value")
        self.variable = str(variable) if variable is not None else None
        self.value = value

    def unparse(self, indent: int = 0) -> str:
        target = self.variable if self.variable is not None else self.value.format()
        return f"{'  '*indent}print {target};\n"

    @classmethod
    def fromLark(cls, meta, children):
        (target,) = children
        if isinstance(target, bramble.Value):
            node = cls(value=target)
        else:
            node = cls(variable=target)
        node.position = _meta_position(meta)
        return node


class Input(Node):
    """Read a line of text into a variable."""

    def __init__(self, variable: str, prompt: str | None = None):
        super().__init__()
        self.variable = str(variable)
        self.prompt = prompt

    def unparse(self, indent: int = 0) -> str:
        prompt = ""
        if self.prompt is not None:
            prompt = bramble.Value.from_python(self.prompt).format() + " "
        return f"{'  '*indent}input {prompt}{self.variable};\n"

    @classmethod
    def fromLark(cls, meta, children):
        *prompt, variable = children
        prompt = prompt[0].data if prompt else None
        node = cls(variable, prompt)
        node.position = _meta_position(meta)
        return node


class ListPush(Node):
    """Append a value to the list bound to a variable."""

    def __init__(self, variable: str, value: "bramble.Value"):
        super().__init__()
        self.variable = str(variable)
        self.value = value

    def unparse(self, indent: int = 0) -> str:
        return f"{'  '*indent}listpush {self.variable} {self.value.format()};\n"


class SetInsert(Node):
    """Add a value to the set bound to a variable."""

    def __init__(self, variable: str, value: "bramble.Value"):
        super().__init__()
        self.variable = str(variable)
        self.value = value

    def unparse(self, indent: int = 0) -> str:
        return f"{'  '*indent}setinsert {self.variable} {self.value.format()};\n"
