from __future__ import annotations

import os
import sys


PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Minimal environment for module imports during tests
os.environ.setdefault("SUPABASE_URL", "https://fleet.supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-test-key")
os.environ.setdefault("DASHBOARD_TIMEZONE", "America/Lima")
os.environ.setdefault("ENVIRONMENT", "dev")
