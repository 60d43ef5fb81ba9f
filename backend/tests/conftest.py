import os
import tempfile

# Point the audit log at a throwaway database before omecalc.config is imported.
_tmpdir = tempfile.mkdtemp(prefix="omecalc-tests-")
os.environ.setdefault("OMECALC_DATABASE_URL", f"sqlite:///{os.path.join(_tmpdir, 'audit.db')}")
os.environ.setdefault("OMECALC_DEFAULT_APAP_PER_TAB_MG", "325")
