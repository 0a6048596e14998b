"""authx509 - X.509 client certificate to SAML attribute mapping."""

__version__ = "0.1.0"
