"""Web routes for authx509."""

from flask import Blueprint, Flask

main_bp = Blueprint("main", __name__)


@main_bp.route("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


def init_app(app: Flask) -> None:
    """Register blueprints with the Flask app."""
    from authx509.web.routes.x509 import x509_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(x509_bp)
