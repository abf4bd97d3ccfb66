from __future__ import annotations

import logging
import os
from flask import Flask

from .extensions import db, migrate, csrf
from .derangement import DEFAULT_MAX_ATTEMPTS
from .views.public import public_bp
from .views.setup import setup_bp
from .views.draw import draw_bp


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///giftdraw.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Shuffle budget per draw. Failure odds are (1 - 1/e)^n for large groups, 2^-n for pairs.
    app.config["DERANGEMENT_MAX_ATTEMPTS"] = int(
        os.environ.get("DERANGEMENT_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
    )
    # Absolute base for share links; defaults to the requesting host.
    app.config["SHARE_BASE_URL"] = os.environ.get("SHARE_BASE_URL", "").strip()

    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())

    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Blueprints
    app.register_blueprint(public_bp)
    app.register_blueprint(setup_bp)
    app.register_blueprint(draw_bp)

    with app.app_context():
        db.create_all()

    return app
