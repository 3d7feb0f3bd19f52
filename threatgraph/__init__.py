"""
Threatgraph - architecture threat modeling engine.

Loads a declarative architecture model from YAML, links it into a consistent
graph, and evaluates built-in and custom risk rules against it.
"""

__version__ = "1.0.0"
