"""Command line interface for txscan."""
