# finance_tracker/app.py
import logging
from datetime import timedelta

import click
from flask import Flask, current_app, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from . import auth, db, stats, transactions
from .config import load_config

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("finance-tracker")


# ---------------- Flask App Factory ----------------
def create_app(overrides=None):
    app = Flask(__name__)

    # Configuration
    app.config.from_mapping(load_config())
    if overrides:
        app.config.from_mapping(overrides)
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(days=int(app.config['JWT_EXPIRES_DAYS']))

    logger.setLevel(app.config['LOG_LEVEL'])

    jwt = JWTManager(app)
    auth.register_jwt_callbacks(jwt)

    # CORS
    origins = [o.strip() for o in str(app.config['CORS_ORIGINS']).split(",") if o.strip()]
    CORS(app, resources={r"/api/*": {"origins": origins}}, supports_credentials=True)

    # Blueprints
    app.register_blueprint(auth.auth_bp, url_prefix='/api/auth')
    app.register_blueprint(transactions.bp, url_prefix='/api/transactions')
    app.register_blueprint(stats.bp, url_prefix='/api/stats')

    # Initialize DB
    db.init_db(app.config['DB_PATH'])
    logger.info(f"Database initialized at {app.config['DB_PATH']}")

    app.teardown_appcontext(db.close_db)

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database tables."""
        db.init_db(current_app.config['DB_PATH'])
        click.echo('Database initialized.')

    @app.route('/health')
    def health():
        return jsonify({"status": "ok"})

    return app


# ---------------- Run ----------------
if __name__ == '__main__':
    create_app().run(debug=True)
