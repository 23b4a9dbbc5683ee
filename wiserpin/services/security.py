from __future__ import annotations

import hashlib
from functools import wraps

from flask import current_app, g, jsonify, request
from flask_login import current_user
from itsdangerous import BadData, URLSafeTimedSerializer

from wiserpin.extensions import db, login_manager
from wiserpin.models import ApiToken, User, utcnow


SESSION_TOKEN_PREFIX = "ws_"


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret_key, salt="identity-session")


def issue_session_token(secret_key: str, user: User) -> str:
    payload = {"user_id": user.id, "username": user.username}
    return SESSION_TOKEN_PREFIX + _serializer(secret_key).dumps(payload)


def verify_session_token(secret_key: str, token: str, max_age: int) -> int | None:
    if not token.startswith(SESSION_TOKEN_PREFIX):
        return None
    try:
        payload = _serializer(secret_key).loads(
            token.removeprefix(SESSION_TOKEN_PREFIX), max_age=max_age
        )
    except BadData:
        return None
    user_id = payload.get("user_id")
    return user_id if isinstance(user_id, int) else None


def _user_from_api_token(token: str):
    token_hash = hashlib.sha256(token.encode("utf-8")).hexdigest()
    token_row = ApiToken.query.filter_by(token_hash=token_hash).first()
    if not token_row or token_row.revoked_at is not None:
        return None
    token_row.last_used_at = utcnow()
    db.session.commit()
    return token_row.user


@login_manager.request_loader
def load_user_from_bearer_token(req):
    auth_header = req.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None

    if token.startswith(SESSION_TOKEN_PREFIX):
        user_id = verify_session_token(
            current_app.config["SECRET_KEY"],
            token,
            max_age=current_app.config["SESSION_TOKEN_TTL_SECONDS"],
        )
        if user_id is None:
            return None
        user = db.session.get(User, user_id)
    else:
        user = _user_from_api_token(token)

    if not user or not user.is_active:
        return None
    return user


def api_auth_required(admin=False):
    def decorator(func):
        @wraps(func)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                has_token = request.headers.get("Authorization", "").startswith(
                    "Bearer "
                )
                message = (
                    "invalid or expired token" if has_token else "authentication required"
                )
                return jsonify({"error": message}), 401
            if admin and not current_user.is_admin:
                return jsonify({"error": "admin access required"}), 403
            g.api_user = current_user._get_current_object()
            return func(*args, **kwargs)

        return wrapped

    return decorator
