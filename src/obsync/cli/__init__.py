"""Command line interface for obsync."""
