"""Domain Layer: value objects, errors, events and ports.

Nothing in here talks to the network or the terminal.
"""
