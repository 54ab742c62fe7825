"""Core package of the weave client."""
