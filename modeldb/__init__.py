"""Embedded typed-model database with transactions, secondary keys, migrations and change watching."""

__version__ = "0.1.0"