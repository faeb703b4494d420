"""Main entry point when executing dashlink as a package.

This allows running the package using python -m dashlink.
"""

from dashlink.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
