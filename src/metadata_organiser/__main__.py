"""Allow running as ``python -m metadata_organiser``."""

from .cli import main

if __name__ == "__main__":
    main()
