"""Main entry point when executing creeble as a package.

This allows running the package using python -m creeble.
"""

from creeble.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
