from __future__ import annotations

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from wiserpin.api import api_bp
from wiserpin.extensions import db
from wiserpin.models import ApiToken, Collection, Pin, User
from wiserpin.services.common import clean_text, is_http_url, parse_tags
from wiserpin.services.search import search_pins
from wiserpin.services.security import api_auth_required, issue_session_token


def _check_credentials(payload: dict):
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return None
    return user


def _clean_id(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _get_user_collection_or_error(user_id: int, collection_id: str):
    collection = db.session.get(Collection, collection_id)
    if not collection:
        return None, (jsonify({"error": "collection not found"}), 404)
    if collection.user_id != user_id:
        return None, (
            jsonify({"error": "you do not have access to this collection"}),
            403,
        )
    return collection, None


def _get_user_pin_or_error(user_id: int, pin_id: str):
    pin = db.session.get(Pin, pin_id)
    if not pin:
        return None, (jsonify({"error": "pin not found"}), 404)
    if pin.user_id != user_id:
        return None, (jsonify({"error": "you do not have access to this pin"}), 403)
    return pin, None


def _owns_collection(user_id: int, collection_id: str | None) -> bool:
    if not collection_id:
        return True
    collection = db.session.get(Collection, collection_id)
    return collection is not None and collection.user_id == user_id


def _positive_int(value, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "WiserPin"})


@api_bp.route("/auth/bootstrap-admin", methods=["POST"])
def bootstrap_admin_api():
    if User.query.count() > 0:
        return jsonify({"error": "bootstrap already completed"}), 409

    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400

    admin = User(username=username, is_admin=True, is_active=True)
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    return jsonify({"status": "created", "user_id": admin.id}), 201


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = request.get_json(silent=True) or {}
    user = _check_credentials(payload)
    if not user:
        return jsonify({"error": "invalid credentials"}), 401

    token_name = (payload.get("token_name") or "WiserPin API Token").strip()
    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name, token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user_id": user.id})


@api_bp.route("/auth/session-token", methods=["POST"])
def create_session_token():
    payload = request.get_json(silent=True) or {}
    user = _check_credentials(payload)
    if not user:
        return jsonify({"error": "invalid credentials"}), 401

    ttl = current_app.config["SESSION_TOKEN_TTL_SECONDS"]
    token = issue_session_token(current_app.config["SECRET_KEY"], user)
    return jsonify({"token": token, "expires_in": ttl, "user_id": user.id})


@api_bp.route("/admin/users", methods=["POST"])
@api_auth_required(admin=True)
def admin_create_user():
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    is_admin = bool(payload.get("is_admin"))

    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"error": "username already exists"}), 409

    user = User(username=username, is_admin=is_admin, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return jsonify({"status": "created", "user_id": user.id}), 201


@api_bp.route("/collections", methods=["GET"])
@api_auth_required()
def collections_list():
    user = g.api_user
    items = (
        Collection.query.filter_by(user_id=user.id)
        .order_by(Collection.created_at.desc())
        .all()
    )
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/collections", methods=["POST"])
@api_auth_required()
def collections_create():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    name = clean_text(payload.get("name"), max_length=100)
    if not name:
        return jsonify({"error": "collection name is required"}), 400

    collection_id = _clean_id(payload.get("id"))
    if collection_id:
        existing = db.session.get(Collection, collection_id)
        if existing:
            if existing.user_id != user.id:
                return jsonify({"error": "collection id already in use"}), 409
            current_app.logger.info(
                "Collection %s already exists, returning existing", collection_id
            )
            return jsonify(existing.as_dict())

    collection = Collection(
        user_id=user.id,
        name=name,
        description=clean_text(payload.get("description"), max_length=500),
        color=clean_text(payload.get("color"), max_length=32)
        or current_app.config["DEFAULT_COLLECTION_COLOR"],
        icon=clean_text(payload.get("icon"), max_length=32),
    )
    if collection_id:
        collection.id = collection_id
    db.session.add(collection)
    db.session.commit()
    return jsonify(collection.as_dict()), 201


@api_bp.route("/collections/<collection_id>", methods=["GET"])
@api_auth_required()
def collections_get(collection_id: str):
    user = g.api_user
    collection, error = _get_user_collection_or_error(user.id, collection_id)
    if error:
        return error
    payload = collection.as_dict()
    pins = sorted(collection.pins, key=lambda pin: pin.created_at, reverse=True)
    payload["pins"] = [pin.as_dict() for pin in pins]
    return jsonify(payload)


@api_bp.route("/collections/<collection_id>", methods=["PATCH"])
@api_auth_required()
def collections_update(collection_id: str):
    user = g.api_user
    collection, error = _get_user_collection_or_error(user.id, collection_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    if "name" in payload:
        collection.name = clean_text(payload.get("name"), max_length=100) or collection.name
    if "description" in payload:
        collection.description = clean_text(payload.get("description"), max_length=500)
    if "color" in payload:
        collection.color = clean_text(payload.get("color"), max_length=32)
    if "icon" in payload:
        collection.icon = clean_text(payload.get("icon"), max_length=32)
    db.session.commit()
    return jsonify(collection.as_dict())


@api_bp.route("/collections/<collection_id>", methods=["DELETE"])
@api_auth_required()
def collections_delete(collection_id: str):
    user = g.api_user
    collection, error = _get_user_collection_or_error(user.id, collection_id)
    if error:
        return error

    db.session.delete(collection)
    db.session.commit()
    return jsonify({"status": "deleted", "id": collection_id})


@api_bp.route("/pins", methods=["GET"])
@api_auth_required()
def pins_list():
    user = g.api_user
    query = Pin.query.filter_by(user_id=user.id)
    collection_id = _clean_id(request.args.get("collectionId"))
    if collection_id:
        query = query.filter_by(collection_id=collection_id)
    items = query.order_by(Pin.created_at.desc()).all()

    search = (request.args.get("search") or "").strip()
    if search:
        items = search_pins(items, search)

    if request.args.get("limit"):
        limit = _positive_int(request.args.get("limit"), 12)
        page = _positive_int(request.args.get("page"), 1)
        total = len(items)
        start = (page - 1) * limit
        return jsonify(
            {
                "items": [item.as_dict() for item in items[start : start + limit]],
                "page": page,
                "limit": limit,
                "total": total,
            }
        )
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/pins", methods=["POST"])
@api_auth_required()
def pins_create():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    url = (payload.get("url") or "").strip()
    if not is_http_url(url):
        return jsonify({"error": "a valid url is required"}), 400

    collection_id = _clean_id(payload.get("collectionId"))
    pin_id = _clean_id(payload.get("id"))

    if pin_id:
        existing = db.session.get(Pin, pin_id)
        if existing:
            if existing.user_id != user.id:
                return jsonify({"error": "pin id already in use"}), 409
            current_app.logger.info("Pin %s already exists, returning existing", pin_id)
            return jsonify(existing.as_dict())

    if not _owns_collection(user.id, collection_id):
        return jsonify({"error": "invalid collection"}), 403

    if Pin.query.filter_by(user_id=user.id, url=url).first():
        return jsonify({"error": "you have already saved this URL"}), 409

    pin = Pin(
        user_id=user.id,
        collection_id=collection_id,
        url=url,
        title=clean_text(payload.get("title"), max_length=200) or "",
        description=clean_text(payload.get("description"), max_length=1000),
        image_url=clean_text(payload.get("imageUrl")),
        favicon=clean_text(payload.get("favicon")),
        tags=parse_tags(payload.get("tags")),
    )
    if pin_id:
        pin.id = pin_id
    db.session.add(pin)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "you have already saved this URL"}), 409
    return jsonify(pin.as_dict()), 201


@api_bp.route("/pins/<pin_id>", methods=["GET"])
@api_auth_required()
def pins_get(pin_id: str):
    user = g.api_user
    pin, error = _get_user_pin_or_error(user.id, pin_id)
    if error:
        return error
    return jsonify(pin.as_dict())


@api_bp.route("/pins/<pin_id>", methods=["PATCH"])
@api_auth_required()
def pins_update(pin_id: str):
    user = g.api_user
    pin, error = _get_user_pin_or_error(user.id, pin_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    if "collectionId" in payload:
        collection_id = _clean_id(payload.get("collectionId"))
        if not _owns_collection(user.id, collection_id):
            return jsonify({"error": "invalid collection"}), 403
        pin.collection_id = collection_id
    if "url" in payload:
        url = (payload.get("url") or "").strip()
        if not is_http_url(url):
            return jsonify({"error": "a valid url is required"}), 400
        pin.url = url
    if "title" in payload:
        pin.title = clean_text(payload.get("title"), max_length=200) or ""
    if "description" in payload:
        pin.description = clean_text(payload.get("description"), max_length=1000)
    if "imageUrl" in payload:
        pin.image_url = clean_text(payload.get("imageUrl"))
    if "favicon" in payload:
        pin.favicon = clean_text(payload.get("favicon"))
    if "tags" in payload:
        pin.tags = parse_tags(payload.get("tags"))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "you have already saved this URL"}), 409
    return jsonify(pin.as_dict())


@api_bp.route("/pins/<pin_id>", methods=["DELETE"])
@api_auth_required()
def pins_delete(pin_id: str):
    user = g.api_user
    pin, error = _get_user_pin_or_error(user.id, pin_id)
    if error:
        return error

    db.session.delete(pin)
    db.session.commit()
    return jsonify({"status": "deleted", "id": pin_id})
