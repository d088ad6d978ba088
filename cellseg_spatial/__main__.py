"""Allow ``python -m cellseg_spatial``."""

from cellseg_spatial.cli import main

main()
