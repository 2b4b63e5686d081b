"""
Branching conversation graph toolkit.

A Python implementation of subset-restricted topological ordering and the
context, layout and settings utilities that build on it.
"""

__version__ = "0.1.0"
