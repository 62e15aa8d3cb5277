"""Main entry point for running komichi as a module."""

from .cli import main

if __name__ == "__main__":
    main()
