# src/mindthreads/__init__.py

"""Hierarchical task lists stored in SQLite, with a console front-end."""

__version__ = "0.1.0"
