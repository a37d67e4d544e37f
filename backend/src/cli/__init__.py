"""Command line interface for diagram vault maintenance."""
