# backend/salonportal/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so metadata is complete before create_all / Alembic
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.invitations import invitations_bp
    from .routes.salons import salons_bp
    from .routes.employees import employees_bp
    from .routes.tariffs import tariffs_bp
    from .routes.suppliers import suppliers_bp
    from .routes.bonus import bonus_bp
    from .routes.insurance import insurance_bp  # Public fullmakt form + admin list
    from .routes.communications import communications_bp
    from .routes.challenges import challenges_bp
    from .routes.hubspot import hubspot_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(invitations_bp)
    app.register_blueprint(salons_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(tariffs_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(bonus_bp)
    app.register_blueprint(insurance_bp)
    app.register_blueprint(communications_bp)
    app.register_blueprint(challenges_bp)
    app.register_blueprint(hubspot_bp)
    app.register_blueprint(dashboard_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or [])
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
