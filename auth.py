"""
Credential store, registration and role checks.

Passwords are hashed with werkzeug (salted scrypt). Every query goes through
the SQLAlchemy ORM, so user input is always bound as a parameter.
"""

import logging
from functools import wraps

from flask import current_app, render_template
from flask_login import current_user, login_user, logout_user
from sqlalchemy import exc
from werkzeug.security import check_password_hash, generate_password_hash

from errors import (
    BadPassword,
    DuplicateUser,
    InvalidAccessCode,
    InvalidRole,
    NotFound,
    UserNotFound,
    ValidationError,
)
from models import ROLES, AccessCode, User, db, transaction
from sessions import Identity, SessionUser

logger = logging.getLogger(__name__)

# Checked when the username does not exist so both failures take the same time
_DUMMY_HASH = generate_password_hash("not-a-real-password")


def _code_for_role(role):
    if role not in ROLES:
        raise InvalidRole()
    code = (
        AccessCode.query.filter_by(role=role, active=True)
        .order_by(AccessCode.id)
        .first()
    )
    if code is None:
        raise InvalidRole()
    return code


def _insert_user(username, password, access_code):
    user = User(
        username=username,
        password_hash=generate_password_hash(password),
        access_code_id=access_code.id,
    )
    try:
        with transaction() as session:
            session.add(user)
    except exc.IntegrityError as e:
        raise DuplicateUser() from e
    return user


def register(username, password, code):
    """Self-service sign up. The access code decides the role."""
    if not username or not password or not code:
        raise ValidationError("Todos los campos son obligatorios")

    access_code = AccessCode.query.filter_by(code=code, active=True).first()
    if access_code is None:
        logger.warning("Registration with invalid access code for %r", username)
        raise InvalidAccessCode()

    if User.query.filter_by(username=username).first() is not None:
        raise DuplicateUser()

    user = _insert_user(username, password, access_code)
    logger.info("Registered user %r as %s", username, access_code.role)
    return user.id


def authenticate(username, password):
    user = User.query.filter_by(username=username).first() if username else None
    if user is None:
        check_password_hash(_DUMMY_HASH, password or "")
        raise UserNotFound()
    if not check_password_hash(user.password_hash, password or ""):
        raise BadPassword()
    return Identity(id=user.id, username=user.username, role=user.role)


def create_user(username, password, role):
    """Admin-created account; the role is mapped to its active access code."""
    if not username or not password:
        raise ValidationError("Usuario y contraseña son obligatorios")
    access_code = _code_for_role(role)
    if User.query.filter_by(username=username).first() is not None:
        raise DuplicateUser()
    user = _insert_user(username, password, access_code)
    logger.info("Admin created user %r as %s", username, role)
    return user.id


def list_users():
    return User.query.order_by(User.username.asc()).all()


def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("Usuario no encontrado")
    return user


def update_user(user_id, username, role):
    """Change username and role. The password hash is left untouched."""
    if not username:
        raise ValidationError("El nombre de usuario es obligatorio")
    access_code = _code_for_role(role)
    user = get_user(user_id)
    try:
        with transaction():
            user.username = username
            user.access_code_id = access_code.id
    except exc.IntegrityError as e:
        raise DuplicateUser() from e
    logger.info("Updated user %s (%r, %s)", user_id, username, role)


def delete_user(user_id):
    with transaction():
        deleted = User.query.filter_by(id=user_id).delete()
    logger.info("Deleted user %s (%d rows)", user_id, deleted)
    return deleted


# --- SESSIONS ---
def session_store():
    return current_app.extensions["session_store"]


def start_session(identity):
    token = session_store().create(identity)
    login_user(SessionUser(token, identity))
    logger.info("Login: %r (%s)", identity.username, identity.role)
    return token


def end_session():
    if current_user.is_authenticated:
        session_store().delete(current_user.token)
    logout_user()


def roles_required(*roles):
    """Let the view run only when the session's role is in ``roles``.

    Use after ``login_required``. The role is the one cached at login.
    """
    allowed = frozenset(roles)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            role = getattr(current_user, "role", None)
            if not current_user.is_authenticated or role not in allowed:
                return render_template("access_denied.html"), 403
            return view(*args, **kwargs)

        return wrapped

    return decorator
