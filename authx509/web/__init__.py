"""Web interface for authx509."""
