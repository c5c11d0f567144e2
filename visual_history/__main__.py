"""Module entry point for the visual-history CLI."""

from .main import main

main()
