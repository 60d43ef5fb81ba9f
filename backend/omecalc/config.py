# backend/omecalc/config.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("OMECALC_DATABASE_URL", "sqlite:///./conversion_audit.db")

# Acetaminophen assumed per combination tablet when the home entry leaves it blank.
DEFAULT_APAP_PER_TAB_MG = float(os.getenv("OMECALC_DEFAULT_APAP_PER_TAB_MG", "325"))

LOG_LEVEL = os.getenv("OMECALC_LOG_LEVEL", "INFO").upper()

AUDIT_ENABLED = os.getenv("OMECALC_AUDIT_ENABLED", "true").lower() in ("1", "true", "yes")
