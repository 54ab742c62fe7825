"""Command-line entry point of the weave client."""
