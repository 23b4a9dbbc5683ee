from flask import Flask

from wiserpin.api import api_bp
from wiserpin.config import Config
from wiserpin.extensions import db, login_manager, migrate


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized WiserPin database.")

    with app.app_context():
        db.create_all()

    return app
