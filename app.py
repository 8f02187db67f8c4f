import io
import logging
import zipfile

import click
from flask import (
    Flask,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import LoginManager, current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

import auth
import patients
from config import Config
from errors import ClinicError, InvalidCredentials, NotFound, StoreUnavailable
from models import ROLES, AccessCode, db
from sessions import SessionStore, SessionUser
from utils import read_spreadsheet

logger = logging.getLogger(__name__)

STAFF = ("admin", "medico")


def create_app(config_object=Config, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db.init_app(app)

    store = SessionStore(app.config["SESSION_LIFETIME_MINUTES"] * 60)
    app.extensions["session_store"] = store

    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.login_view = "login"
    login_manager.login_message = None

    @login_manager.user_loader
    def load_user(token):
        identity = store.get(token)
        if identity is None:
            return None
        return SessionUser(token, identity)

    register_routes(app)
    register_error_handlers(app)
    register_commands(app)
    return app


def message(text, back=None, status=200):
    back = back or url_for("index")
    return render_template("message.html", message=text, back=back), status


# --- ROUTES ---
def register_routes(app):
    @app.route("/")
    @login_required
    def index():
        return render_template("index.html")

    @app.route("/registro", methods=["GET", "POST"])
    def registro():
        if request.method == "POST":
            auth.register(
                request.form.get("username", "").strip(),
                request.form.get("password", ""),
                request.form.get("access_code", "").strip(),
            )
            return redirect(url_for("login"))
        return render_template("registro.html")

    @app.route("/login", methods=["GET", "POST"])
    def login():
        if request.method == "POST":
            username = request.form.get("username", "").strip()
            try:
                identity = auth.authenticate(username, request.form.get("password", ""))
            except InvalidCredentials as e:
                logger.warning("Failed login for %r", username)
                return render_template("login.html", error=e.message)
            auth.start_session(identity)
            return redirect(url_for("index"))

        if current_user.is_authenticated:
            return redirect(url_for("index"))
        return render_template("login.html")

    @app.route("/logout")
    def logout():
        auth.end_session()
        return redirect(url_for("login"))

    @app.route("/tipo-usuario")
    @login_required
    def tipo_usuario():
        # tipo_usuario is the key older front-end pages read
        return jsonify({"role": current_user.role, "tipo_usuario": current_user.role})

    # Users (admin only)
    @app.route("/ver-usuarios")
    @login_required
    @auth.roles_required("admin")
    def ver_usuarios():
        return render_template("usuarios.html", users=auth.list_users())

    @app.route("/usuarios/nuevo", methods=["GET", "POST"])
    @login_required
    @auth.roles_required("admin")
    def nuevo_usuario():
        if request.method == "POST":
            auth.create_user(
                request.form.get("username", "").strip(),
                request.form.get("password", ""),
                request.form.get("role"),
            )
            return redirect(url_for("ver_usuarios"))
        return render_template("usuario_form.html", user=None, roles=ROLES)

    @app.route("/usuarios/editar/<int:user_id>", methods=["GET", "POST"])
    @login_required
    @auth.roles_required("admin")
    def editar_usuario(user_id):
        if request.method == "POST":
            auth.update_user(
                user_id,
                request.form.get("username", "").strip(),
                request.form.get("role"),
            )
            return redirect(url_for("ver_usuarios"))
        return render_template(
            "usuario_form.html", user=auth.get_user(user_id), roles=ROLES
        )

    @app.route("/usuarios/eliminar/<int:user_id>", methods=["POST"])
    @login_required
    @auth.roles_required("admin")
    def eliminar_usuario(user_id):
        auth.delete_user(user_id)
        return redirect(url_for("ver_usuarios"))

    # Patients (admin and medico)
    @app.route("/pacientes")
    @login_required
    @auth.roles_required(*STAFF)
    def ver_pacientes():
        return render_template(
            "pacientes.html",
            patients=patients.list_patients(),
            title="Pacientes registrados",
        )

    @app.route("/pacientes-ordenados")
    @login_required
    @auth.roles_required(*STAFF)
    def pacientes_ordenados():
        return render_template(
            "pacientes.html",
            patients=patients.list_sorted(),
            title="Pacientes ordenados alfabéticamente",
        )

    @app.route("/pacientes/nuevo", methods=["GET", "POST"])
    @login_required
    @auth.roles_required(*STAFF)
    def nuevo_paciente():
        if request.method == "POST":
            patients.create(patients.PatientFields.from_mapping(request.form))
            return message("Paciente guardado correctamente", back=url_for("index"))
        return render_template("paciente_form.html", patient=None)

    @app.route("/pacientes/editar/<int:patient_id>", methods=["GET", "POST"])
    @login_required
    @auth.roles_required(*STAFF)
    def editar_paciente(patient_id):
        if request.method == "POST":
            patients.update(
                patient_id, patients.PatientFields.from_mapping(request.form)
            )
            return redirect(url_for("ver_pacientes"))
        return render_template(
            "paciente_form.html", patient=patients.get(patient_id)
        )

    @app.route("/pacientes/eliminar/<int:patient_id>", methods=["POST"])
    @login_required
    @auth.roles_required(*STAFF)
    def eliminar_paciente(patient_id):
        patients.delete(patient_id)
        return redirect(url_for("ver_pacientes"))

    @app.route("/buscar-pacientes", methods=["GET", "POST"])
    @login_required
    @auth.roles_required(*STAFF)
    def buscar_pacientes():
        source = request.form if request.method == "POST" else request.args
        name = (source.get("name") or "").strip()
        if len(name) < patients.MIN_SEARCH_LENGTH:
            return render_template("buscar.html", name=name, results=None)
        return render_template(
            "buscar.html", name=name, results=patients.search(name)
        )

    @app.route("/api/pacientes/buscar")
    @login_required
    @auth.roles_required(*STAFF)
    def sugerencias_pacientes():
        found = patients.search(
            request.args.get("q"), limit=patients.TYPEAHEAD_LIMIT
        )
        return jsonify([p.to_summary() for p in found])

    @app.route("/importar-pacientes", methods=["POST"])
    @login_required
    @auth.roles_required(*STAFF)
    def importar_pacientes():
        upload = request.files.get("archivo")
        if upload is None or not upload.filename:
            return message("No se subió ningún archivo", status=400)
        try:
            rows = read_spreadsheet(io.BytesIO(upload.read()), upload.filename)
        except (ValueError, OSError, zipfile.BadZipFile):
            logger.exception("Could not read spreadsheet %r", upload.filename)
            return message("Error al leer el archivo", status=400)
        count = patients.bulk_import(rows)
        return message(
            f"{count} pacientes importados correctamente", back=url_for("index")
        )


def register_error_handlers(app):
    @app.errorhandler(ClinicError)
    def handle_clinic_error(e):
        status = 404 if isinstance(e, NotFound) else 400
        back = url_for("registro") if request.endpoint == "registro" else None
        return message(e.message, back=back, status=status)

    @app.errorhandler(StoreUnavailable)
    def handle_store_unavailable(e):
        return render_template("error.html"), 503

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(e):
        db.session.rollback()
        logger.exception("Unhandled database error")
        return render_template("error.html"), 500


def seed_access_codes(app):
    """Create the tables and the configured registration codes (idempotent)."""
    db.create_all()
    for role, key in (("admin", "ADMIN_ACCESS_CODE"), ("medico", "MEDICO_ACCESS_CODE")):
        code = app.config.get(key)
        if not code:
            logger.warning("%s not set, no %s code created", key, role)
            continue
        if AccessCode.query.filter_by(code=code).first() is None:
            db.session.add(AccessCode(code=code, role=role, active=True))
    db.session.commit()


def register_commands(app):
    @app.cli.command("seed")
    def seed_command():
        """Create tables and access codes from the environment."""
        seed_access_codes(app)
        click.echo("System Ready!")


# --- SETUP ---
if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        seed_access_codes(app)
    app.run(debug=True)
