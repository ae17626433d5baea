"""
Package entry point.

Allows running the application via:

    python -m classplanner

This simply forwards execution to classplanner.cli.main().
"""

from classplanner.cli import main

if __name__ == "__main__":
    main()
