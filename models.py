import datetime
import logging
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import exc

from errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Initialize the database variable (we connect it to the app in create_app)
db = SQLAlchemy()

ROLES = ("admin", "medico")


# --- DATABASE TABLES ---
class AccessCode(db.Model):
    __tablename__ = "codigos_acceso"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False)
    role = db.Column(db.String(20), nullable=False)  # admin | medico
    active = db.Column(db.Boolean, nullable=False, default=True)


class User(db.Model):
    __tablename__ = "usuarios"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    access_code_id = db.Column(
        db.Integer, db.ForeignKey("codigos_acceso.id"), nullable=False
    )

    # Role comes from the access code, it is not duplicated on the user row
    access_code = db.relationship("AccessCode", lazy="joined")

    @property
    def role(self):
        return self.access_code.role


class Patient(db.Model):
    __tablename__ = "pacientes"

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(200), nullable=False)
    birth_date = db.Column(db.String(32), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    prior_conditions = db.Column(db.Text, nullable=True)
    family_history = db.Column(db.Text, nullable=True)
    prescribed_medication = db.Column(db.Text, nullable=True)
    weight = db.Column(db.Float, nullable=True)  # kg
    height = db.Column(db.Float, nullable=True)  # m
    bmi = db.Column(db.Float, nullable=True)
    emergency_contact = db.Column(db.String(200), nullable=True)

    @property
    def birth_date_is_iso(self):
        """False for free-text dates kept as imported (e.g. "15/03/2023")."""
        if not self.birth_date or len(self.birth_date) != 10:
            return False
        try:
            datetime.date.fromisoformat(self.birth_date)
        except ValueError:
            return False
        return True

    def to_summary(self):
        return {"id": self.id, "full_name": self.full_name, "phone": self.phone}


@contextmanager
def transaction():
    """Commit on success, roll back on any error.

    IntegrityError is re-raised as is so callers can map it (duplicate
    usernames); any other store failure becomes StoreUnavailable.
    """
    try:
        yield db.session
        db.session.commit()
    except exc.IntegrityError:
        db.session.rollback()
        raise
    except exc.SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Database operation failed")
        raise StoreUnavailable() from e
    except Exception:
        db.session.rollback()
        raise
