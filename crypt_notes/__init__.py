"""Crypt Notes: a terminal note manager with an optionally encrypted notes file."""

APP_NAME = "Crypt Notes"
__version__ = "0.3.0"
