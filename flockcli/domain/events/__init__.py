"""Domain Event definitions.

Represents significant occurrences while paging, resolving and streaming
that other parts of the system might react to.
"""
