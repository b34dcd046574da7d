from flask import Flask, jsonify, request
from config import Config
from .extensions import db, login_manager, mail, migrate, celery
from .models import User
from .exceptions import CampusRequestsError
from .celery_utils import init_celery
from .logging_config import configure_logging


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    # Initialize Extensions
    db.init_app(app)
    mail.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Initialize Celery
    init_celery(app, celery)

    # --- BEARER TOKEN AUTH ---
    @login_manager.request_loader
    def load_user_from_request(req):
        header = req.headers.get('Authorization', '')
        if header.startswith('Bearer '):
            return User.verify_auth_token(header[len('Bearer '):].strip())
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'ERR_UNAUTHENTICATED', 'message': 'Authentication required.'}), 401

    # --- ERROR HANDLING ---
    @app.errorhandler(CampusRequestsError)
    def handle_domain_error(e):
        if e.status_code >= 500:
            app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        else:
            app.logger.info("%s on %s %s: %s", e.code, request.method, request.path, e)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'ERR_NOT_FOUND', 'message': 'Resource not found.'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'ERR_METHOD_NOT_ALLOWED', 'message': 'Method not allowed.'}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({'error': 'ERR_TOO_LARGE', 'message': 'Attachment is too large.'}), 413

    # Register Blueprints
    from .blueprints.auth import auth_bp
    from .blueprints.academic import academic_bp
    from .blueprints.notifications import notifications_bp
    from .blueprints.admin import admin_bp

    app.register_blueprint(auth_bp, url_prefix='/api')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(academic_bp, url_prefix='/api')

    from .commands import seed_users_command
    app.cli.add_command(seed_users_command)

    # Create DB Tables
    # With Flask-Migrate, production databases use 'flask db upgrade';
    # this keeps development and test databases usable out of the box.
    with app.app_context():
        db.create_all()

    return app
