import logging
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .errors import BackOfficeError
from .extensions import db, init_extensions

# blueprints
from .blueprints.main import main_bp
from .blueprints.cvs import cvs_bp
from .blueprints.orders import orders_bp
from .blueprints.contracts import contracts_bp
from .blueprints.external_accounts import external_accounts_bp
from .blueprints.reports import reports_bp
from .blueprints.tracking import tracking_bp

logger = logging.getLogger(__name__)


def configure_logging(app: Flask):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    )
    logging.getLogger().setLevel(level)

    log_file = app.config.get("LOG_FILE")
    if log_file and not any(isinstance(h, RotatingFileHandler) for h in logging.getLogger().handlers):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,   # 1MB
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logging.getLogger().addHandler(file_handler)


def register_error_handlers(app: Flask):
    @app.errorhandler(BackOfficeError)
    def _handle_back_office_error(err):
        db.session.rollback()
        logger.warning("rejected: %s", err.reason)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(SQLAlchemyError)
    def _handle_storage_error(err):
        db.session.rollback()
        logger.exception("storage error")
        return jsonify({"error": str(err)}), 500


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)
    init_extensions(app)
    register_error_handlers(app)

    app.register_blueprint(main_bp)
    app.register_blueprint(cvs_bp, url_prefix="/cvs")
    app.register_blueprint(orders_bp, url_prefix="/orders")
    app.register_blueprint(contracts_bp, url_prefix="/contracts")
    app.register_blueprint(external_accounts_bp, url_prefix="/external-accounts")
    app.register_blueprint(reports_bp, url_prefix="/reports")
    app.register_blueprint(tracking_bp, url_prefix="/track")

    return app
