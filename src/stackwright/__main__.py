"""Entrypoint for ``python -m stackwright``."""

from stackwright.cli import main

if __name__ == "__main__":
    main()
