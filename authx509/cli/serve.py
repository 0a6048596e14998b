"""Server CLI commands."""

import click


@click.command()
@click.option(
    "--host",
    "-h",
    default=None,
    help="Host to bind to (default: from config or 127.0.0.1)",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (default: from config or 8080)",
)
@click.option(
    "--client-cert-header",
    default=None,
    help="Trust this request header for the client certificate (default: none). "
    "Only use behind a proxy that overwrites it.",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug mode",
)
def serve(
    host: str | None,
    port: int | None,
    client_cert_header: str | None,
    debug: bool,
) -> None:
    """Start the authx509 web server.

    Run it behind a web server or reverse proxy that terminates TLS,
    requests a client certificate and forwards it either as the
    SSL_CLIENT_CERT environment variable or in a request header.

    Examples:

        # Start with settings from config.yaml
        authx509 serve

        # nginx: proxy_set_header X-Client-Cert $ssl_client_escaped_cert;
        authx509 serve --client-cert-header X-Client-Cert
    """
    from authx509.app import run_server
    from authx509.core.config import load_config

    config = load_config()

    if client_cert_header:
        config.server.client_cert_header = client_cert_header

    if debug:
        config.server.debug = True

    run_server(app_config=config, host=host, port=port)
