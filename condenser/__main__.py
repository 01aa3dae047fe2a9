"""Entry point for running condenser as a module: python -m condenser."""

from condenser.cli.commands import app

if __name__ == "__main__":
    app()
