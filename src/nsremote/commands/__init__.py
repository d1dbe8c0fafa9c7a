"""Command modules for the nsremote CLI."""
