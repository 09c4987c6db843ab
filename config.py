"""
Environment configuration for the subscription ledger.

Values are read once at import time from the process environment, after
loading an optional .env file.
"""
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./subscriptions.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Holder identity used at the token collaborator when a ledger is created
# without an explicit custody account; the ledger id is appended.
LEDGER_CUSTODY_PREFIX = os.getenv("LEDGER_CUSTODY_PREFIX", "subscription-ledger-")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [origin for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin]

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
