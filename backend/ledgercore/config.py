# backend/ledgercore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ledgercore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ledgercore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Posting date window for automated postings
    POSTING_MAX_FUTURE_DAYS = int(os.environ.get("POSTING_MAX_FUTURE_DAYS", "1"))
    POSTING_MAX_PAST_YEARS = int(os.environ.get("POSTING_MAX_PAST_YEARS", "5"))

    # Concurrency retry budget for ledger/sequence conflicts
    POSTING_RETRY_ATTEMPTS = int(os.environ.get("POSTING_RETRY_ATTEMPTS", "3"))

    JOURNAL_CODE_PREFIX = os.environ.get("JOURNAL_CODE_PREFIX", "JE")
