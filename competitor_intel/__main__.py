"""Allow running as ``python -m competitor_intel``."""

from competitor_intel.cli import main

main()
