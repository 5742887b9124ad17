"""Main entry point when executing flockcli as a package.

This allows running the package using python -m flockcli.
"""

from flockcli.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
