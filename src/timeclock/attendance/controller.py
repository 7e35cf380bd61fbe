from __future__ import annotations

import hmac
import logging
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, current_app, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..common.datetime_utils import parse_iso_date
from ..core.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from ..core.enums import ErrorCategory, Role, SessionStatus, WorkLocation
from ..core.exceptions import (
    AttendanceError,
    CheckInLocationMissing,
    LateJustificationRequired,
    NoActiveSession,
    OutOfRadius,
    SessionAlreadyActive,
    ValidationError,
)
from ..container import Container
from .model import HistoryFilter, Location

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    SessionAlreadyActive: 409,
    NoActiveSession: 404,
    CheckInLocationMissing: 403,
    OutOfRadius: 403,
}


def _error_response(exc: AttendanceError):
    body: Dict[str, Any] = {
        "success": False,
        "error": exc.code,
        "category": exc.category.value,
        "message": str(exc),
    }
    if isinstance(exc, OutOfRadius):
        body["distance_m"] = round(exc.distance_m, 1)
        body["radius_m"] = exc.radius_m
    if isinstance(exc, LateJustificationRequired):
        body["late_minutes"] = exc.late_minutes
    status = _STATUS_BY_ERROR.get(type(exc), 400)
    return jsonify(body), status


def _location_from(data: Dict[str, Any]) -> Optional[Location]:
    if data.get("latitude") is None or data.get("longitude") is None:
        return None
    return Location(latitude=data["latitude"], longitude=data["longitude"], address=data.get("address"))


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"success": False, "error": "UNAUTHORIZED", "message": "Unauthorized"}), 401
            g.user_id = str(session["user_id"])
            g.is_admin = session.get("role") == Role.ADMIN.value
            return view(*args, **kwargs)

        return wrapper

    def cron_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            secret = current_app.config.get("CRON_SECRET") or ""
            supplied = request.headers.get("Authorization", "")
            if not secret or not hmac.compare_digest(supplied, f"Bearer {secret}"):
                return jsonify({"success": False, "error": "UNAUTHORIZED", "message": "Unauthorized"}), 401
            return view(*args, **kwargs)

        return wrapper

    @app.errorhandler(AttendanceError)
    def handle_attendance_error(exc: AttendanceError):
        if exc.category == ErrorCategory.ADMIN:
            logger.error("attendance integrity error: %s", exc.code, extra={"user_id": g.get("user_id")})
        return _error_response(exc)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"success": False, "error": "VALIDATION_ERROR", "message": str(exc)}), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("attendance request failed", extra={"user_id": g.get("user_id"), "error": str(exc)})
        return jsonify({"success": False, "error": "INTERNAL_ERROR", "message": "Failed to process attendance request"}), 500

    @app.route("/api/attendance/check-in", methods=["POST"], endpoint="attendance_check_in")
    @login_required
    def check_in():
        data = request.get_json(silent=True) or {}
        created = service.check_in(
            g.user_id,
            location=_location_from(data),
            work_location=data.get("work_location"),
            notes=data.get("notes"),
            late_reason=data.get("late_reason"),
        )
        return jsonify({"success": True, "session": created.to_dict()}), 201

    @app.route("/api/attendance/check-out", methods=["POST"], endpoint="attendance_check_out")
    @login_required
    def check_out():
        data = request.get_json(silent=True) or {}
        closed = service.check_out(
            g.user_id,
            location=_location_from(data),
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "session": closed.to_dict()}), 200

    @app.route("/api/attendance/location", methods=["POST"], endpoint="attendance_location")
    @login_required
    def record_location():
        data = request.get_json(silent=True) or {}
        session_id = data.get("session_id")
        if not session_id:
            active = service.get_current_session(g.user_id).active_session
            session_id = active.session_id if active else None

        ping = None
        if session_id:
            ping = service.record_location(
                str(session_id),
                location=_location_from(data),
                accuracy=data.get("accuracy"),
                user_id=g.user_id,
            )
        # Background signal: the caller only learns whether it was kept.
        return jsonify({"success": True, "recorded": ping is not None}), 200

    @app.route("/api/attendance/current", methods=["GET"], endpoint="attendance_current")
    @login_required
    def current():
        return jsonify(service.get_current_session(g.user_id).to_dict()), 200

    @app.route("/api/attendance/history", methods=["GET"], endpoint="attendance_history")
    @login_required
    def history():
        args = request.args
        try:
            page = int(args.get("page", 1))
            limit = min(int(args.get("limit", DEFAULT_HISTORY_LIMIT)), MAX_HISTORY_LIMIT)
            date_from = parse_iso_date(args["date_from"]) if args.get("date_from") else None
            date_to = parse_iso_date(args["date_to"]) if args.get("date_to") else None
            work_location = WorkLocation(args["work_location"].upper()) if args.get("work_location") else None
            statuses = tuple(SessionStatus(s.strip().upper()) for s in args.get("status", "").split(",") if s.strip())
        except ValueError:
            raise ValidationError("Invalid history filter")

        user_id = g.user_id
        if g.is_admin:
            user_id = args.get("user_id") or None

        result = service.get_history(
            HistoryFilter(
                user_id=user_id,
                date_from=date_from,
                date_to=date_to,
                work_location=work_location,
                statuses=statuses,
            ),
            page=page,
            limit=limit,
        )
        return jsonify(
            {
                "sessions": [s.to_dict() for s in result.sessions],
                "total": result.total,
                "page": result.page,
                "limit": result.limit,
            }
        ), 200

    @app.route("/api/attendance/sessions/<session_id>/locations", methods=["GET"], endpoint="attendance_session_locations")
    @login_required
    def session_locations(session_id: str):
        pings = service.list_pings(session_id, user_id=None if g.is_admin else g.user_id)
        return jsonify({"locations": [p.to_dict() for p in pings]}), 200

    @app.route("/api/attendance/auto-checkout", methods=["POST"], endpoint="attendance_auto_checkout")
    @cron_required
    def auto_checkout():
        report = container.auto_closer.sweep()
        return jsonify(
            {
                "success": True,
                "processed": report.processed,
                "closed": report.closed,
                "failed": report.failed,
                "results": [r.to_dict() for r in report.results],
            }
        ), 200
