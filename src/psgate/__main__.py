"""Allow ``python -m psgate`` to behave like the CLI entry point."""

from psgate.cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
