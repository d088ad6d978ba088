"""Command-line interface for cellseg-spatial.

Example Usage
-------------
    # From command line:
    cellseg-spatial --help
    cellseg-spatial parse "CD3+/CD8+" "Total Cells"
    cellseg-spatial count-within fields/ --pair CK+ CD8+ -r 15 -o out/
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
