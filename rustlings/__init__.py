"""Runner for small Rust exercises: compile, test, list, watch and grade them."""

__version__ = "5.5.1"
__all__ = ["__version__"]