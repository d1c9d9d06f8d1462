from flask import Blueprint, jsonify

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return jsonify(
        {
            "name": "StudioRent",
            "endpoints": {
                "instruments": "/api/instruments",
                "rooms": "/api/rooms",
                "availability": "/api/availability/room",
                "bookings": ["/api/bookings/room", "/api/bookings/instrument"],
                "auth": ["/auth/signup", "/auth/login", "/auth/logout", "/auth/session"],
            },
        }
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
