"""Entry point for running linked-views as a module.

Usage:
    python -m linked_views [options] [points file]
"""

from linked_views.cli import main

if __name__ == "__main__":
    main()
