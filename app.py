import logging, os, resource, time
from dotenv import load_dotenv
from datetime import datetime
from flask import Flask, render_template, request, jsonify, make_response
from werkzeug.exceptions import HTTPException
from models import db, DetectionCache, FREE_PROTON
from vpn_checker import ProtonClassifier, load_prefix_table, country_name, SAMPLE_IPS
from fallback import make_fallback

DEFAULT_IP = "8.8.8.8"
SERVER_NAME = "render-proton-handle"
SERVICE_NAME = "Proton VPN Handle API"


def _now():
    return datetime.utcnow().isoformat(timespec="milliseconds") + "Z"


def client_ip(req):
    """First X-Forwarded-For hop, then X-Real-IP, then the socket address.

    A blank first hop resolves to DEFAULT_IP rather than an empty key.
    """
    raw = req.headers.get("X-Forwarded-For") or req.headers.get("X-Real-IP") or req.remote_addr or DEFAULT_IP
    return raw.split(",")[0].strip() or DEFAULT_IP


def create_app(test_config=None, classifier=None, fallback=None):
    # Load .env in local/dev environments
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    # In-memory SQLite unless DATABASE_URL asks for a persistent store
    db_uri = os.getenv("DATABASE_URL") or "sqlite://"
    # Render / Heroku style postgres URL fix
    if db_uri.startswith("postgres://"):
        db_uri = db_uri.replace("postgres://", "postgresql://", 1)
    app.config.update(SQLALCHEMY_DATABASE_URI=db_uri, SQLALCHEMY_TRACK_MODIFICATIONS=False,
                      SECRET_KEY=os.getenv("SECRET_KEY", "dev-secret"),
                      SECONDARY_CLASSIFIER=os.getenv("SECONDARY_CLASSIFIER", "random"),
                      PREFIX_TABLE_PATH=os.getenv("PREFIX_TABLE_PATH", ""))
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    with app.app_context():
        db.create_all()

    classifier = classifier or ProtonClassifier(load_prefix_table(app.config["PREFIX_TABLE_PATH"]))
    fallback = fallback or make_fallback(app.config["SECONDARY_CLASSIFIER"])
    cache = DetectionCache()
    started = time.monotonic()
    app.extensions["proton_handle"] = {"classifier": classifier, "fallback": fallback, "cache": cache}
    app.logger.info("classifier ready: %d buckets, fallback=%s", len(classifier.table), fallback.name)

    def _no_store(payload):
        resp = make_response(jsonify(payload))
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return e
        app.logger.exception("Error in %s", request.path)
        return jsonify({"error": "Internal server error", "message": str(e)}), 500

    @app.route("/")
    def index():
        return render_template("dashboard.html", base_url=request.host_url.rstrip("/"), year=datetime.utcnow().year)

    @app.route("/dc")
    def dc():
        ip = client_ip(request)
        detection = classifier.classify(ip)
        if detection.is_match:
            code = detection.country
        else:
            code = fallback.country_for(ip)
        data = {
            "proxy": "yes" if detection.is_match else "no",
            "isocode": code,
            "country": country_name(code),
            "vpn_type": FREE_PROTON if detection.is_match else "none",
            "server_type": detection.server_type,
            "confidence": detection.confidence,
            "matched_range": detection.matched_prefix or "none",
            "timestamp": _now(),
            "render_hosted": True,
        }
        cache.record(ip, data)
        return _no_store({
            "clientIp": ip,
            ip: data,
            "message": "success",
            "server": SERVER_NAME,
            "time": _now(),
            "total_detections": cache.count()["total"],
        })

    @app.route("/check")
    def check():
        ip = request.args.get("ip") or request.remote_addr or DEFAULT_IP
        detection = classifier.classify(ip)
        return jsonify({
            "ip": ip,
            "isFreeProtonVPN": detection.is_match,
            "details": detection.as_dict(),
            "action": "✅ Show special content" if detection.is_match else "❌ Show normal content",
        })

    @app.route("/stats")
    def stats():
        counts = cache.count()
        return _no_store({
            "status": "active",
            "total_requests": counts["total"],
            "proton_detections": counts["matched"],
            "normal_detections": counts["total"] - counts["matched"],
            "uptime": round(time.monotonic() - started, 3),
            "memory": {"max_rss": resource.getrusage(resource.RUSAGE_SELF).ru_maxrss},
            "server_time": _now(),
        })

    @app.route("/test")
    def run_samples():
        results = [{"ip": ip, "detection": classifier.classify(ip).as_dict()} for ip in SAMPLE_IPS]
        return jsonify({"test_results": results, "note": "Use /dc endpoint for real detection"})

    @app.route("/health")
    def health():
        return {"status": "healthy", "timestamp": _now(), "service": SERVICE_NAME}

    return app


app = create_app()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", 3000))
    app.logger.info("%s on port %d: /dc /check /stats /test /health", SERVICE_NAME, port)
    app.run(host="0.0.0.0", port=port)
