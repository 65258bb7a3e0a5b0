"""
RoundSight CLI Entry Point

Allows running the package as a module: python -m roundsight
"""

from roundsight.cli import main

if __name__ == "__main__":
    main()
