"""flockcli: rate-limit-aware collection of social graphs, timelines and posts."""

__version__ = "0.3.0"
