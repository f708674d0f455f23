"""Command-line client for the Freepik generative-media API."""

__version__ = "0.1.0"
