from flask import Flask, jsonify
from config import Config
from .extensions import db, login_manager, mail, migrate, celery
from .models import User
from dotenv import load_dotenv
from .celery_utils import init_celery
from .logging_config import configure_logging

load_dotenv()


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

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Login required'}), 401

    # Register Blueprints
    from .blueprints.auth import auth_bp
    from .blueprints.programs import programs_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(programs_bp, url_prefix='/programs')

    from .cli import seed_users_command
    app.cli.add_command(seed_users_command)

    # Tables for development; deployments run 'flask db upgrade'
    with app.app_context():
        db.create_all()

    return app
