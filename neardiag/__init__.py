# neardiag/__init__.py
import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import config
from .extensions import init_engine
from .ingest.pipeline import load_tables
from .routes.datapacks import bp as datapacks_bp

logger = logging.getLogger(__name__)


def create_app(config_name=None, tables=None):
    """App factory. `tables` (SurveyTables) skips reading DATA_DIR, as tests do."""
    cfg = config.get(config_name or os.environ.get("FLASK_ENV", "default"), config["default"])
    app = Flask(__name__)
    app.config.from_object(cfg)
    app.url_map.strict_slashes = False  # 避免 308/301 重定向
    app.json.sort_keys = False

    logging.basicConfig(level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))
    CORS(app, origins=app.config["CORS_ORIGINS"])

    if tables is None:
        tables = load_tables(app.config["DATA_DIR"], app.config["SURVEY_ID"])
    init_engine(app, tables)
    app.register_blueprint(datapacks_bp)

    @app.get("/api/v1/health")
    def health():
        return {"status": "ok"}

    # 所有 /api/* 错误都返回 JSON
    @app.errorhandler(404)
    def _404(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "not found", "path": request.path}), 404
        return e

    @app.errorhandler(405)
    def _405(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "method not allowed", "path": request.path}), 405
        return e

    @app.errorhandler(500)
    def _500(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "Internal server error"}), 500
        return e

    return app
