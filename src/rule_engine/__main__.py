"""Entry point for ``python -m src.rule_engine``."""

from src.rule_engine.cli import app

if __name__ == "__main__":
    app()
