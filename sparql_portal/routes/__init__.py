"""Routes package - Blueprint registration."""
from sparql_portal.routes.main import main_bp
from sparql_portal.routes.auth import auth_bp
from sparql_portal.routes.admin import admin_bp
from sparql_portal.routes.api import api_bp
from sparql_portal.routes.sparql import sparql_bp


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    # auth first: its app-wide hooks resolve the identity and guard every page
    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(sparql_bp)
