"""Client certificate login and error report routes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast
from urllib.parse import urlsplit

from flask import Blueprint, current_app, redirect, request, url_for

if TYPE_CHECKING:
    from flask import Request
    from werkzeug.wrappers import Response as WerkzeugResponse

    from authx509.core.mapper import MapperConfig

from authx509.core.auth import X509AuthSource, extract_client_certificate
from authx509.core.mapper import Failure

x509_bp = Blueprint(
    "x509",
    __name__,
    url_prefix="/x509",
)

ERROR_CODE_ARG = "errorcode"


def get_auth_source() -> X509AuthSource:
    """Build the authentication source from the app configuration."""
    mapper_config = cast("MapperConfig", current_app.config["MAPPER_CONFIG"])
    return X509AuthSource(mapper_config)


def build_diagnostic_items(req: Request) -> dict[str, list[str]]:
    """Collect request details shown on the error report for debugging.

    Args:
        req: The current request.

    Returns:
        Mapping of item name to a list of string values.
    """
    hostname = urlsplit(req.host_url).hostname or ""
    return {
        "HTTP_HOST": [hostname],
        "HTTPS": ["on"] if req.is_secure else [],
        "SERVER_PROTOCOL": [req.environ.get("SERVER_PROTOCOL", "")],
        "getBaseURL()": [req.url_root],
        "getSelfHost()": [hostname],
        "getSelfHostWithNonStandardPort()": [req.host],
        "getSelfURLHost()": [req.host_url.rstrip("/")],
        "getSelfURLNoQuery()": [req.base_url],
        "getSelfHostWithPath()": [req.host + req.script_root],
        "getSelfURL()": [req.url],
    }


@x509_bp.route("/login")
def login() -> dict[str, Any] | WerkzeugResponse:
    """Authenticate the client by the certificate passed on by the web server.

    On success returns the subject identifier and attributes for the
    assertion builder. On failure redirects to the error report.
    """
    pem = extract_client_certificate(
        request.environ,
        current_app.config.get("CLIENT_CERT_HEADER"),
    )
    outcome = get_auth_source().authenticate(pem, remote_addr=request.remote_addr)

    if isinstance(outcome, Failure):
        return redirect(url_for("x509.error_report", **{ERROR_CODE_ARG: outcome.error.value}))

    return outcome.to_dict()


@x509_bp.route("/error-report")
def error_report() -> dict[str, Any]:
    """Diagnostic data for a failed certificate authentication."""
    parameters = {
        key: value for key, value in request.args.items() if key != ERROR_CODE_ARG
    }
    return {
        "errorCode": request.args.get(ERROR_CODE_ARG),
        "parameters": parameters,
        "items": build_diagnostic_items(request),
    }
