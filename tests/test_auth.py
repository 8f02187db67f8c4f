import pytest

import auth
from config import TestConfig
from errors import (
    BadPassword,
    DuplicateUser,
    InvalidAccessCode,
    InvalidCredentials,
    InvalidRole,
    NotFound,
    UserNotFound,
    ValidationError,
)
from models import AccessCode, User, db

ADMIN_CODE = TestConfig.ADMIN_ACCESS_CODE
MEDICO_CODE = TestConfig.MEDICO_ACCESS_CODE


@pytest.mark.parametrize("code, role", [(ADMIN_CODE, "admin"), (MEDICO_CODE, "medico")])
def test_register_then_authenticate(ctx, code, role):
    user_id = auth.register("laura", "clave-segura", code)
    identity = auth.authenticate("laura", "clave-segura")
    assert identity.id == user_id
    assert identity.username == "laura"
    assert identity.role == role


def test_password_is_hashed(ctx):
    user_id = auth.register("laura", "clave-segura", MEDICO_CODE)
    user = db.session.get(User, user_id)
    assert user.password_hash != "clave-segura"
    assert "clave-segura" not in user.password_hash


def test_wrong_password(ctx):
    auth.register("laura", "clave-segura", MEDICO_CODE)
    with pytest.raises(BadPassword):
        auth.authenticate("laura", "otra")


def test_unknown_user_still_checks_a_hash(ctx, monkeypatch):
    calls = []
    real_check = auth.check_password_hash

    def counting_check(pwhash, password):
        calls.append(pwhash)
        return real_check(pwhash, password)

    monkeypatch.setattr(auth, "check_password_hash", counting_check)
    with pytest.raises(UserNotFound):
        auth.authenticate("fantasma", "x")
    assert len(calls) == 1


def test_both_failures_share_the_user_facing_message(ctx):
    auth.register("laura", "clave-segura", MEDICO_CODE)
    with pytest.raises(InvalidCredentials) as missing:
        auth.authenticate("nadie", "clave-segura")
    with pytest.raises(InvalidCredentials) as wrong:
        auth.authenticate("laura", "mala")
    assert missing.value.message == wrong.value.message


def test_invalid_access_code(ctx):
    with pytest.raises(InvalidAccessCode):
        auth.register("laura", "clave", "NO-EXISTE")
    assert User.query.count() == 0


def test_inactive_access_code(ctx):
    db.session.add(AccessCode(code="VIEJO", role="medico", active=False))
    db.session.commit()
    with pytest.raises(InvalidAccessCode):
        auth.register("laura", "clave", "VIEJO")


def test_duplicate_user(ctx):
    auth.register("laura", "clave", MEDICO_CODE)
    with pytest.raises(DuplicateUser):
        auth.register("laura", "otra", ADMIN_CODE)
    assert User.query.count() == 1


def test_missing_fields(ctx):
    with pytest.raises(ValidationError):
        auth.register("", "clave", MEDICO_CODE)


def test_create_user_by_role(ctx):
    user_id = auth.create_user("pedro", "clave", "admin")
    assert auth.get_user(user_id).role == "admin"
    with pytest.raises(InvalidRole):
        auth.create_user("otro", "clave", "enfermera")


def test_update_user_changes_role_but_not_hash(ctx):
    user_id = auth.register("laura", "clave", MEDICO_CODE)
    old_hash = db.session.get(User, user_id).password_hash

    auth.update_user(user_id, "laura.g", "admin")

    user = db.session.get(User, user_id)
    assert user.username == "laura.g"
    assert user.role == "admin"
    assert user.password_hash == old_hash
    assert auth.authenticate("laura.g", "clave").role == "admin"


def test_update_user_invalid_role(ctx):
    user_id = auth.register("laura", "clave", MEDICO_CODE)
    with pytest.raises(InvalidRole):
        auth.update_user(user_id, "laura", "root")


def test_update_user_role_without_active_code(ctx):
    AccessCode.query.filter_by(role="admin").update({"active": False})
    db.session.commit()
    user_id = auth.register("laura", "clave", MEDICO_CODE)
    with pytest.raises(InvalidRole):
        auth.update_user(user_id, "laura", "admin")


def test_update_missing_user(ctx):
    with pytest.raises(NotFound):
        auth.update_user(999, "x", "admin")


def test_update_user_duplicate_username(ctx):
    auth.register("laura", "clave", MEDICO_CODE)
    other = auth.register("pedro", "clave", MEDICO_CODE)
    with pytest.raises(DuplicateUser):
        auth.update_user(other, "laura", "medico")


def test_delete_user_is_idempotent(ctx):
    user_id = auth.register("laura", "clave", MEDICO_CODE)
    assert auth.delete_user(user_id) == 1
    assert auth.delete_user(user_id) == 0
    assert auth.delete_user(12345) == 0


def test_list_users_sorted(ctx):
    auth.register("zoe", "clave", MEDICO_CODE)
    auth.register("ana", "clave", ADMIN_CODE)
    assert [u.username for u in auth.list_users()] == ["ana", "zoe"]
