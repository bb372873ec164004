"""Command-line app: display formatting, terminal tools, and the CLI."""
