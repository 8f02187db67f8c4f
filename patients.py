"""
Patient records: CRUD, name search and bulk spreadsheet import.

Raw form/spreadsheet values are converted once, in PatientFields.from_mapping,
so the store only ever sees None for missing optional values.
"""

import logging
from dataclasses import asdict, dataclass, fields
from typing import Optional

from errors import ImportRejected, NotFound, ValidationError
from models import Patient, db, transaction
from utils import clean_text, normalize_birth_date, optional_float

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
TYPEAHEAD_LIMIT = 20

# Column headers used by older spreadsheets
COLUMN_ALIASES = {
    "nombre_completo": "full_name",
    "fecha_de_nacimiento": "birth_date",
    "no_telefono": "phone",
    "enfermedades_previas": "prior_conditions",
    "antecedentes_familiares": "family_history",
    "medicamento_prescrito": "prescribed_medication",
    "peso": "weight",
    "talla": "height",
    "imc": "bmi",
    "contacto_de_emergencia": "emergency_contact",
}


@dataclass
class PatientFields:
    full_name: Optional[str] = None
    birth_date: Optional[str] = None
    phone: Optional[str] = None
    prior_conditions: Optional[str] = None
    family_history: Optional[str] = None
    prescribed_medication: Optional[str] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    bmi: Optional[float] = None
    emergency_contact: Optional[str] = None

    @classmethod
    def from_mapping(cls, data):
        data = {COLUMN_ALIASES.get(k, k): v for k, v in data.items()}
        return cls(
            full_name=clean_text(data.get("full_name")),
            birth_date=normalize_birth_date(data.get("birth_date")),
            phone=clean_text(data.get("phone")),
            prior_conditions=clean_text(data.get("prior_conditions")),
            family_history=clean_text(data.get("family_history")),
            prescribed_medication=clean_text(data.get("prescribed_medication")),
            weight=optional_float(data.get("weight"), "peso"),
            height=optional_float(data.get("height"), "talla"),
            bmi=optional_float(data.get("bmi"), "IMC"),
            emergency_contact=clean_text(data.get("emergency_contact")),
        )

    def validate(self):
        if not self.full_name:
            raise ValidationError("El nombre completo es obligatorio")
        return self


def create(patient_fields):
    patient = Patient(**asdict(patient_fields.validate()))
    with transaction() as session:
        session.add(patient)
    logger.info("Created patient %s", patient.id)
    return patient.id


def list_patients():
    return Patient.query.all()


def list_sorted():
    return Patient.query.order_by(Patient.full_name.asc()).all()


def _like_pattern(text):
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search(query, limit=None):
    """Case-insensitive substring match on full_name.

    Queries shorter than MIN_SEARCH_LENGTH return no rows instead of the
    whole table.
    """
    query = (query or "").strip()
    if len(query) < MIN_SEARCH_LENGTH:
        return []
    q = Patient.query.filter(
        Patient.full_name.ilike(_like_pattern(query), escape="\\")
    ).order_by(Patient.full_name.asc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def get(patient_id):
    patient = db.session.get(Patient, patient_id)
    if patient is None:
        raise NotFound("Paciente no encontrado")
    return patient


def update(patient_id, patient_fields):
    """Replace every editable field of an existing record."""
    patient_fields.validate()
    patient = get(patient_id)
    with transaction():
        for f in fields(PatientFields):
            setattr(patient, f.name, getattr(patient_fields, f.name))
    logger.info("Updated patient %s", patient_id)


def delete(patient_id):
    with transaction():
        deleted = Patient.query.filter_by(id=patient_id).delete()
    logger.info("Deleted patient %s (%d rows)", patient_id, deleted)
    return deleted


def bulk_import(rows):
    """Insert every row or none of them.

    Rows are numbered from 1 (first data row under the header). If any row is
    invalid the whole file is rejected with the list of bad rows.
    """
    parsed = []
    bad_rows = []
    for number, row in enumerate(rows, start=1):
        try:
            parsed.append(PatientFields.from_mapping(row).validate())
        except ValidationError:
            bad_rows.append(number)

    if bad_rows:
        logger.warning("Import rejected, invalid rows: %s", bad_rows)
        raise ImportRejected(bad_rows)
    if not parsed:
        raise ValidationError("El archivo no contiene pacientes")

    with transaction() as session:
        session.add_all([Patient(**asdict(p)) for p in parsed])
    logger.info("Imported %d patients", len(parsed))
    return len(parsed)
