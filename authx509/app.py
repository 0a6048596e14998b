"""Flask application factory."""

from __future__ import annotations

import os
import secrets
from typing import TYPE_CHECKING

from flask import Flask

from authx509.core.mapper import MapperConfig

if TYPE_CHECKING:
    from authx509.core.config import AppConfig


def create_app(config: dict | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Optional configuration dictionary to override defaults.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Default configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("AUTHX509_SECRET_KEY") or secrets.token_hex(32),
        MAPPER_CONFIG=MapperConfig(),
        # Forwarded certificate header; None reads SSL_CLIENT_CERT only
        CLIENT_CERT_HEADER=None,
    )

    if config:
        app.config.from_mapping(config)

    from authx509.web import routes

    routes.init_app(app)

    return app


def run_server(
    app_config: AppConfig | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the Flask development server.

    TLS is expected to be terminated by a web server or reverse proxy in
    front, which passes the client certificate along.

    Args:
        app_config: Application configuration. Loads from file/env if not provided.
        host: Override host from config.
        port: Override port from config.
    """
    from authx509.core.config import load_config
    from authx509.core.logging import configure_logging

    if app_config is None:
        app_config = load_config()

    configure_logging(
        level=app_config.logging.level,
        trace_enabled=app_config.logging.trace,
        log_file=str(app_config.logging.file) if app_config.logging.file else None,
    )

    server_host = host or app_config.server.host
    server_port = port or app_config.server.port

    app = create_app({
        "MAPPER_CONFIG": app_config.mapper,
        "CLIENT_CERT_HEADER": app_config.server.client_cert_header,
    })
    app.debug = app_config.server.debug

    print("Starting authx509 server...")
    print(f"  URL: http://{server_host}:{server_port}/x509/login")
    header = app_config.server.client_cert_header
    print(f"  Client certificate header: {header or '(disabled, SSL_CLIENT_CERT only)'}")
    print("")

    app.run(host=server_host, port=server_port)
