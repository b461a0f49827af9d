from flask import Flask, jsonify
from fund_portal.routes.health import bp as health_bp
from fund_portal.routes.documents import bp as documents_bp
from fund_portal.routes.submissions import bp as submissions_bp
from fund_portal.utils.config import HOST, PORT, FLASK_ENV
from fund_portal.utils.logger import get_logger


logger = get_logger("server")


def create_app() -> Flask:
    app = Flask(__name__)
    app.register_blueprint(health_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(submissions_bp)


    @app.get("/")
    def root():
        return jsonify({"service": "fund-portal", "env": FLASK_ENV})


    return app


if __name__ == "__main__":
    logger.info("Starting fund-portal on %s:%s (%s)", HOST, PORT, FLASK_ENV)
    create_app().run(host=HOST, port=PORT)
