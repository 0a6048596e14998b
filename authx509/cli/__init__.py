"""Command line interface for authx509."""
