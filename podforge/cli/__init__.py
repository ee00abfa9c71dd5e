"""Command line entry points for podforge."""
