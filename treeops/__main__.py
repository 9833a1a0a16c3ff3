"""Allow ``python -m treeops``."""

from treeops.cli import app

if __name__ == "__main__":
    app()
