from __future__ import annotations

import io
import logging
from functools import wraps

from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import parse_iso_date
from ..container import Container
from ..core.enums import SyncStatus
from ..core.exceptions import AuthenticationError, StorageError, ValidationError
from ..qr.image import render_qr_png

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service
    run = container.runtime.run

    def _fail(message: str, status: int):
        return jsonify({"success": False, "message": message}), status

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                user = service.current_user()
            except AuthenticationError as e:
                return _fail(str(e), 401)
            return view(user, *args, **kwargs)

        return wrapper

    def admin_required(view):
        @wraps(view)
        def wrapper(user, *args, **kwargs):
            if not user.is_admin:
                return _fail("Administrator access required", 403)
            return view(user, *args, **kwargs)

        return login_required(wrapper)

    def _scoped_filters(user):
        """Members only ever see their own records; admins may filter freely."""
        user_id = (request.args.get("userId") or "").strip() or None
        date_s = (request.args.get("date") or "").strip()
        try:
            work_date = parse_iso_date(date_s) if date_s else None
        except ValueError:
            raise ValidationError("Invalid date (YYYY-MM-DD)")

        if not user.is_admin:
            if user_id and user_id != user.user_id:
                return None
            user_id = user.user_id
        return user_id, work_date

    @app.errorhandler(StorageError)
    def handle_storage_error(e: StorageError):
        logger.error("Ledger storage error: %s", e)
        return _fail("Local storage unavailable", 503)

    @app.route("/api/dashboard", methods=["GET"], endpoint="api_dashboard")
    @login_required
    def api_dashboard(user):
        view = run(service.dashboard(user))
        return jsonify(view.to_dict())

    @app.route("/api/status", methods=["GET"], endpoint="api_status")
    @login_required
    def api_status(user):
        last = container.sync_engine.last_synced_at
        return jsonify(
            {
                "online": container.connectivity.is_online(),
                "unsynced": run(service.unsynced_count()),
                "sync_in_progress": container.sync_engine.in_progress,
                "last_synced_at": last.isoformat(timespec="seconds") if last else None,
            }
        )

    @app.route("/api/attendance", methods=["POST"], endpoint="api_record_attendance")
    @login_required
    def api_record_attendance(user):
        data = request.get_json(silent=True) or {}
        try:
            record = run(service.record_attendance(user.user_id, data.get("type", "check-in"), member_name=user.name))
        except ValidationError as e:
            return _fail(str(e), 400)
        return jsonify({"success": True, "record": record.to_dict()}), 201

    @app.route("/api/attendance", methods=["GET"], endpoint="api_history")
    @login_required
    def api_history(user):
        try:
            filters = _scoped_filters(user)
        except ValidationError as e:
            return _fail(str(e), 400)
        if filters is None:
            return _fail("You can only view your own attendance", 403)

        user_id, work_date = filters
        records = run(service.get_history(user_id, work_date))
        return jsonify({"success": True, "records": [r.to_dict() for r in records]})

    @app.route("/api/attendance/unsynced", methods=["GET"], endpoint="api_unsynced")
    @login_required
    def api_unsynced(user):
        return jsonify({"unsynced": run(service.unsynced_count())})

    @app.route("/api/attendance/refresh", methods=["POST"], endpoint="api_refresh")
    @login_required
    def api_refresh(user):
        try:
            filters = _scoped_filters(user)
        except ValidationError as e:
            return _fail(str(e), 400)
        if filters is None:
            return _fail("You can only refresh your own attendance", 403)

        user_id, work_date = filters
        imported = run(service.refresh(user_id, work_date))
        return jsonify({"success": True, "imported": imported})

    @app.route("/api/sync", methods=["POST"], endpoint="api_sync")
    @login_required
    def api_sync(user):
        summary = run(service.sync_now())

        if summary.status == SyncStatus.OFFLINE:
            message = "Offline: records stay queued on this device"
        elif summary.status == SyncStatus.IN_PROGRESS:
            message = "Sync already in progress"
        elif summary.failed:
            message = f"Sync failed for {len(summary.failed)} record(s), please retry"
        else:
            message = "Sync complete"

        body = summary.to_dict()
        body.update({"success": summary.ok, "message": message})
        return jsonify(body)

    # ===== QR CODE ENDPOINTS =====

    @app.route("/api/qr/checkin", methods=["POST"], endpoint="api_qr_checkin")
    @admin_required
    def api_qr_checkin(user):
        """Admin scans a member's code and records a check-in for them."""
        data = request.get_json(silent=True) or {}
        result = run(service.record_scan(str(data.get("code") or ""), scanned_by=user))
        return jsonify(result.to_dict()), (200 if result.accepted else 400)

    @app.route("/api/me/qr/image", methods=["GET"], endpoint="api_my_qr_image")
    @login_required
    def api_my_qr_image(user):
        """The member's personal QR code, scanned at the front desk."""
        png = render_qr_png(service.member_qr_payload(user))
        return send_file(io.BytesIO(png), mimetype="image/png")
