import datetime
import math
import numbers
import os

import pandas as pd

from errors import ValidationError

# Day zero of spreadsheet serial dates (serial 1 == 1899-12-31)
SERIAL_EPOCH = datetime.date(1899, 12, 30)

SPREADSHEET_EXTENSIONS = {".xlsx", ".csv"}


def is_blank(value):
    """True for None, NaN/NaT cells and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_text(value):
    if is_blank(value):
        return None
    # Spreadsheet columns with gaps load as floats: 5551234 -> 5551234.0
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def optional_float(value, field="valor"):
    """Form/spreadsheet number -> float, or None when the input is empty."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Valor numérico inválido en {field}")
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        raise ValidationError(f"Valor numérico inválido en {field}") from None


def serial_to_iso(serial):
    """Spreadsheet serial day number -> 'YYYY-MM-DD'. Fractions (time) are dropped."""
    try:
        days = int(float(serial) // 1)
        return (SERIAL_EPOCH + datetime.timedelta(days=days)).isoformat()
    except (ValueError, OverflowError):
        raise ValidationError("Fecha de nacimiento inválida") from None


def _as_number(value):
    if isinstance(value, bool):
        return None
    # numpy scalars from pandas register as numbers.Number
    if isinstance(value, numbers.Number):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def normalize_birth_date(value):
    """Convert spreadsheet encodings of a date to ISO; pass other strings through."""
    if is_blank(value):
        return None
    if isinstance(value, (datetime.datetime, pd.Timestamp)):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    number = _as_number(value)
    if number is not None:
        if not math.isfinite(number):
            raise ValidationError("Fecha de nacimiento inválida")
        return serial_to_iso(number)
    return str(value).strip()


def read_spreadsheet(stream, filename):
    """First sheet of an uploaded file as a list of {column: value} rows."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in SPREADSHEET_EXTENSIONS:
        raise ValidationError("Formato de archivo no soportado (use .xlsx o .csv)")
    if ext == ".csv":
        df = pd.read_csv(stream, dtype=object)
    else:
        df = pd.read_excel(stream, sheet_name=0)
    df.columns = [str(c).strip() for c in df.columns]
    df = df.dropna(how="all")
    return df.to_dict(orient="records")
