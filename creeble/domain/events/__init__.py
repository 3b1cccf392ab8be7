"""Domain Event definitions.

Represents significant occurrences during a request or a traversal that
other parts of the system (logging, CLI progress) might react to.
"""
