"""
Authentication Routes
"""
import logging
from datetime import datetime
from flask import Blueprint, request, jsonify, g
from procto import db
from procto.models.user import User
from procto.services.authorization_service import require_auth
from procto.services.rate_limiter import rate_limit
from procto.utils.jwt_handler import create_tokens, refresh_access_token

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


@auth_bp.route("/register", methods=["POST"])
@rate_limit("register")
def register():
    """Register a new faculty or student account"""
    data = request.get_json(silent=True) or {}

    required_fields = ["email", "password", "first_name", "last_name"]
    for field in required_fields:
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400
        if not isinstance(data[field], str):
            return jsonify({"error": f"{field} must be a string"}), 400

    if len(data["password"]) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400

    email = data["email"].strip().lower()
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "Email already registered"}), 409

    username = data.get("username") or ""
    if not isinstance(username, str):
        return jsonify({"error": "username must be a string"}), 400
    username = username.strip() or None
    if username and User.query.filter_by(username=username).first():
        return jsonify({"error": "Username already taken"}), 409

    role = "faculty" if data.get("role") == "faculty" else "student"

    user = User(
        email=email,
        username=username,
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        role=role
    )
    user.set_password(data["password"])

    try:
        db.session.add(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Registration failed for {email}: {e}")
        return jsonify({"error": "Could not create account"}), 500

    logger.info(f"Registered {role} {user.id}")

    access_token, refresh_token = create_tokens(str(user.id), user.role)

    return jsonify({
        "message": "User registered successfully",
        "user": user.to_dict(),
        "access_token": access_token,
        "refresh_token": refresh_token
    }), 201


@auth_bp.route("/login", methods=["POST"])
@rate_limit("login_attempt")
def login():
    """Authenticate by email or username and return tokens"""
    data = request.get_json(silent=True) or {}

    identifier = data.get("identifier") or data.get("email") or ""
    password = data.get("password")

    if not isinstance(identifier, str) or not isinstance(password, str):
        return jsonify({"error": "Email/username and password must be strings"}), 400

    identifier = identifier.strip()
    if not identifier or not password:
        return jsonify({"error": "Email/username and password are required"}), 400

    if "@" in identifier:
        user = User.query.filter_by(email=identifier.lower()).first()
    else:
        user = User.query.filter_by(username=identifier).first()

    if not user or not user.check_password(password):
        logger.info(f"Failed login for {identifier}")
        return jsonify({"error": "Invalid credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "Account is deactivated"}), 403

    user.last_login_at = datetime.utcnow()
    db.session.commit()

    access_token, refresh_token = create_tokens(str(user.id), user.role)

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "access_token": access_token,
        "refresh_token": refresh_token
    }), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def get_current_user():
    """Get current authenticated user"""
    return jsonify({"user": g.current_user.to_dict()}), 200


def _current_role(user_id):
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user.role


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """Refresh access token"""
    data = request.get_json(silent=True) or {}
    refresh_token = data.get("refresh_token")

    if not refresh_token:
        return jsonify({"error": "Refresh token required"}), 400

    new_access_token = refresh_access_token(refresh_token, _current_role)

    if not new_access_token:
        return jsonify({"error": "Invalid or expired refresh token"}), 401

    return jsonify({"access_token": new_access_token}), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Logout user (client should discard tokens)"""
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.route("/change-password", methods=["POST"])
@require_auth
def change_password():
    """Change user password"""
    user = g.current_user
    data = request.get_json(silent=True) or {}

    current_password = data.get("current_password")
    new_password = data.get("new_password")

    if not current_password or not new_password:
        return jsonify({"error": "Current and new password required"}), 400

    if not isinstance(current_password, str) or not isinstance(new_password, str):
        return jsonify({"error": "Passwords must be strings"}), 400

    if not user.check_password(current_password):
        return jsonify({"error": "Current password is incorrect"}), 401

    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"New password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400

    user.set_password(new_password)
    db.session.commit()

    return jsonify({"message": "Password changed successfully"}), 200
