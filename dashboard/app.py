"""
dashboard/app.py
Flask HTTP API for the weak-password scanner -- security-first design.

Routes:
  GET  /api/scans                   snapshot of all tracked scan tasks
  POST /api/scans                   {"type", "target", "options"} → schedule
  POST /api/scans/stop              {"type", "target"} → stop
  GET  /api/results?limit=&weak=1   latest per-host results
  GET  /api/hosts/<host_id>/result  latest result of one host
  GET  /api/stats
  GET  /health

Security properties:
  - debug=False enforced programmatically (cannot be overridden by env)
  - SECRET_KEY auto-generated if not set
  - Optional basic-auth with bcrypt password hashes (passlib)
  - Stacktraces never exposed to client

Layering: dashboard -> database.repository + an injected scan client
(anything with schedule_scan/list_scans/stop_scan); no core imports.
"""

from __future__ import annotations

import hmac
import secrets

from flask import Flask, Response, abort, jsonify, request
from passlib.hash import bcrypt
from werkzeug.exceptions import HTTPException

from database.repository import Repository
from utils.logger import get_logger

log = get_logger("weakscan.dashboard")


def hash_password(plain: str) -> str:
    """bcrypt hash for the auth_password config value."""
    return bcrypt.hash(plain)


def verify_password(plain: str, stored: str) -> bool:
    """
    Verify plain against a stored bcrypt hash, or against a plaintext value
    (dev only) in constant time.
    """
    if stored.startswith("$2"):          # bcrypt hash prefix
        try:
            return bcrypt.verify(plain, stored)
        except ValueError:
            return False
    return hmac.compare_digest(stored.encode(), plain.encode())


def _scope_args(payload: dict) -> tuple[str, str]:
    scope_type = payload.get("type")
    target = payload.get("target")
    if not isinstance(scope_type, str) or not isinstance(target, str):
        raise ValueError("Unrecognized type/target")
    return scope_type, target


# -- Factory ------------------------------------------------------------------

def create_app(cfg: dict, client, repo: Repository) -> Flask:
    """
    Application factory.

    cfg keys:
      secret_key     str
      enable_auth    bool -- enable HTTP Basic-Auth (default False)
      auth_username  str
      auth_password  str  -- bcrypt hash OR plain (plain triggers warning)
    """
    app = Flask(__name__)

    secret = cfg.get("secret_key", "")
    if not secret or secret == "CHANGE_THIS_IN_PRODUCTION":
        secret = secrets.token_hex(32)

    app.config["SECRET_KEY"]           = secret
    app.config["DEBUG"]                = False   # HARD -- no env override
    app.config["PROPAGATE_EXCEPTIONS"] = False
    app.config["TRAP_HTTP_EXCEPTIONS"] = False

    enable_auth = cfg.get("enable_auth", False)
    auth_user   = cfg.get("auth_username", "weakscan")
    stored_pass = cfg.get("auth_password", "")

    if enable_auth and stored_pass and not stored_pass.startswith("$2"):
        log.warning(
            "auth_password is stored as plaintext -- consider storing a "
            "bcrypt hash instead (run: main.py --hash-password <password>)."
        )

    @app.before_request
    def _require_auth():
        if not enable_auth:
            return None
        auth = request.authorization
        if not auth or not auth.username or auth.password is None:
            return _auth_challenge()
        ok_user = hmac.compare_digest(auth.username.encode(), auth_user.encode())
        ok_pass = verify_password(auth.password, stored_pass)
        if not (ok_user and ok_pass):
            return _auth_challenge()
        return None

    # Error handlers (no stacktrace leakage)
    @app.errorhandler(ValueError)
    def _bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(HTTPException)
    def _http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def _unhandled(e):
        log.exception("Unhandled exception")
        return jsonify({"error": "internal server error"}), 500

    # Routes
    @app.route("/api/scans")
    def api_scans():
        return jsonify(client.list_scans())

    @app.route("/api/scans", methods=["POST"])
    def api_schedule_scan():
        payload = request.get_json(silent=True) or {}
        scope_type, target = _scope_args(payload)
        options = payload.get("options") or {}
        if not isinstance(options, dict):
            raise ValueError("options must be an object")
        return jsonify(client.schedule_scan(scope_type, target, options))

    @app.route("/api/scans/stop", methods=["POST"])
    def api_stop_scan():
        payload = request.get_json(silent=True) or {}
        scope_type, target = _scope_args(payload)
        return jsonify(client.stop_scan(scope_type, target))

    @app.route("/api/results")
    def api_results():
        limit = min(int(request.args.get("limit", 50)), 500)
        weak_only = request.args.get("weak") in ("1", "true", "yes")
        return jsonify(repo.list_host_results(limit, only_findings=weak_only))

    @app.route("/api/hosts/<path:host_id>/result")
    def api_host_result(host_id: str):
        data = repo.get_host_result(host_id)
        if data is None:
            abort(404, description=f"no result for {host_id}")
        return jsonify(data)

    @app.route("/api/stats")
    def api_stats():
        return jsonify(repo.stats())

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "auth": enable_auth})

    return app


# -- Helpers ------------------------------------------------------------------

def _auth_challenge() -> Response:
    return Response(
        "Authentication required",
        401,
        {"WWW-Authenticate": 'Basic realm="WeakScan"'},
    )


# -- Server runner ------------------------------------------------------------

def run_dashboard(cfg: dict, client, repo: Repository) -> None:
    app = create_app(cfg, client, repo)
    host = cfg.get("host", "127.0.0.1")
    port = cfg.get("port", 5000)
    print(f"[*] API at http://{host}:{port}/api/scans")
    print(f"[*] Auth: {'ON' if cfg.get('enable_auth') else 'OFF (use --enable-auth for production)'}")
    app.run(host=host, port=port, debug=False, use_reloader=False)
