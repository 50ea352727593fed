# finance_tracker/auth.py
import logging
import sqlite3

from flask import Blueprint, jsonify, request
from flask_jwt_extended import create_access_token, current_user, jwt_required
from werkzeug.security import check_password_hash, generate_password_hash

from . import db

logger = logging.getLogger("finance-tracker")

auth_bp = Blueprint("auth", __name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _field(data, name):
    value = data.get(name)
    return value.strip() if isinstance(value, str) else ""


def _token_for(user):
    return create_access_token(identity=str(user.id))


def register_jwt_callbacks(jwt):
    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        # tokens of deleted users are rejected with 401
        return db.get_user(int(jwt_data["sub"]))

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"msg": f"Not authorized, token invalid: {reason}"}), 401


@auth_bp.route("/register", methods=["POST"])
def register():
    data = _json_body()
    name = _field(data, "name")
    email = _field(data, "email")
    password = data.get("password") if isinstance(data.get("password"), str) else ""

    if not name or not email or not password:
        return jsonify({"msg": "Please provide all fields"}), 400

    try:
        if db.find_user_by_email(email):
            return jsonify({"msg": "User already exists"}), 400
        user = db.create_user(name, email, generate_password_hash(password))
    except sqlite3.IntegrityError:
        return jsonify({"msg": "User already exists"}), 400
    except sqlite3.Error as e:
        logger.exception("User registration failed")
        return jsonify({"msg": "Failed to register user", "error": str(e)}), 500

    logger.info(f"Registered user {user.id}")
    return jsonify({"user": user.to_dict(), "token": _token_for(user)}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = _json_body()
    email = _field(data, "email")
    password = data.get("password") if isinstance(data.get("password"), str) else ""

    if not email or not password:
        return jsonify({"msg": "Please provide all fields"}), 400

    try:
        user = db.find_user_by_email(email)
    except sqlite3.Error as e:
        logger.exception("User lookup failed")
        return jsonify({"msg": "Failed to login user", "error": str(e)}), 500

    if not user or not check_password_hash(user.password_hash, password):
        return jsonify({"msg": "Invalid credentials"}), 401

    return jsonify({"user": user.to_dict(), "token": _token_for(user)})


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    return jsonify({"user": current_user.to_dict()})
