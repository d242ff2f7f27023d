"""Allow ``python -m feedsync``."""

from feedsync.cli.typer_app import app

if __name__ == "__main__":
    app()
