"""Story interpreter runtime for branching visual-novel documents."""

__version__ = "0.1.0"

__all__ = ["__version__"]
