"""hoist: fleet selection and injection-safe shell command construction."""

__version__ = "0.1.0"
