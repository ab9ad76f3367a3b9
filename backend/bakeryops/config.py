# backend/bakeryops/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance folder unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///bakeryops.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a SQLite writer waits on the database lock before failing
    SQLITE_BUSY_TIMEOUT = int(os.environ.get("SQLITE_BUSY_TIMEOUT", "15"))

    # Local invoice PDFs (rendered off the request thread unless disabled)
    INVOICE_PDF_DIR = os.environ.get("INVOICE_PDF_DIR", "instance/invoices")
    INVOICE_PDF_ASYNC = _env_bool("INVOICE_PDF_ASYNC", True)

    # Accounting constants used by the receipt export
    CASH_ACCOUNT_CODE = os.environ.get("CASH_ACCOUNT_CODE", "5311")

    # Tolerance when comparing member prices of a product group
    PRICE_GROUP_EPSILON = os.environ.get("PRICE_GROUP_EPSILON", "0.001")
