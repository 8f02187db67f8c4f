import os
import secrets
from dotenv import load_dotenv

# Load the .env file sitting next to the app (DB url, secret key, access codes)
load_dotenv()


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_hex(32))
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///clinica.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_LIFETIME_MINUTES = int(os.getenv("SESSION_LIFETIME_MINUTES", "480"))

    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_MB", "5")) * 1024 * 1024

    # Registration codes created by `flask --app app seed`
    ADMIN_ACCESS_CODE = os.getenv("ADMIN_ACCESS_CODE")
    MEDICO_ACCESS_CODE = os.getenv("MEDICO_ACCESS_CODE")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ADMIN_ACCESS_CODE = "ADMIN-2024"
    MEDICO_ACCESS_CODE = "MED-2024"
    LOG_LEVEL = "WARNING"
