"""Run the bridge with ``python -m diagramai_mcp``."""

from .cli import main

if __name__ == "__main__":
    main()
