"""Allow ``python -m alfred_pinboard``."""

from alfred_pinboard.cli import main

main()
