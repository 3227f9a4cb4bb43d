"""Top-level package for domain-specific feature modules."""

# This file ensures that the `features` directory is treated as a Python package
# so that modules can be imported via `features.*` dotted paths.
