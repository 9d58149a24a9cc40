"""
Bramble Programming Language Implementation

A small interpreted language where variables can be changed speculatively
inside named branches, and later merged back only if nothing else
committed to them in the meantime.
"""

__version__ = "0.1.0"


from ._error import *
from ._value import *
from ._world import *
from ._branch import *
from ._parse import *
from ._exec import *
from . import ast
