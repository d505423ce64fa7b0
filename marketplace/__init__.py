from flask import Flask, jsonify
from flask_migrate import Migrate
from flask_login import LoginManager
from marketplace.extensions import db
from marketplace.config import Config
from marketplace.middleware import setup_auth_middleware, setup_error_handlers
import logging
import os

# Configure logging
_log_handlers = [logging.StreamHandler()]
_log_file = os.environ.get('LOG_FILE', 'app.log')
if _log_file:
    _log_handlers.insert(0, logging.FileHandler(_log_file))

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_log_handlers
)

logger = logging.getLogger(__name__)

migrate = Migrate()
login_manager = LoginManager()


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({'message': 'Not logged in'}), 401


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Setup user loader
    from marketplace.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Register blueprints
    from marketplace.blueprints import (
        admin,
        auth,
        categories,
        comments,
        favorites,
        listings,
        orders,
        payments,
        statistics,
        vendors,
    )

    # All blueprints declare absolute /api/... routes.
    app.register_blueprint(auth.bp)
    app.register_blueprint(categories.bp)
    app.register_blueprint(listings.bp)
    app.register_blueprint(vendors.bp)
    app.register_blueprint(favorites.bp)
    app.register_blueprint(orders.bp)
    app.register_blueprint(payments.bp)
    app.register_blueprint(comments.bp)
    app.register_blueprint(admin.bp)
    app.register_blueprint(statistics.bp)

    # Site-wide login protection and firm scoping
    setup_auth_middleware(app)
    setup_error_handlers(app)

    # Note: Database tables are managed via Flask-Migrate
    # Use 'flask db upgrade' to create/update tables

    logger.info("Marketplace application initialized")
    return app
