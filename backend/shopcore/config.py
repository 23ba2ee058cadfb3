# backend/shopcore/config.py
from __future__ import annotations
import os


class Config:
    # SQLite DB stored next to the process by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopcore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Formatted document numbers: INV-2026-0001
    DOCUMENT_NUMBER_PAD = int(os.environ.get("DOCUMENT_NUMBER_PAD", "4"))

    # Photos are served by the file store, never by path
    PHOTO_URL_TEMPLATE = os.environ.get("PHOTO_URL_TEMPLATE", "/api/photos/{photo_id}")

    # When True an audit sink failure aborts the business transaction
    AUDIT_FAILURES_ARE_FATAL = os.environ.get("AUDIT_FAILURES_ARE_FATAL", "false").lower() == "true"

    # Optional callable (shop_id, place_of_supply) -> bool.
    # None means every transaction is treated as intra-state (CGST/SGST split).
    INTRA_STATE_RESOLVER = None

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
