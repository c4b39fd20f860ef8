"""spectrack CLI module entry point.

Enables running the CLI via: python -m spectrack.cli
"""

from spectrack.cli.main import cli

if __name__ == "__main__":
    cli()
