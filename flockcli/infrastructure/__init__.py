"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (REST and streaming APIs,
configuration files, the terminal, output files) by implementing the
interfaces defined in the domain layer.
"""
