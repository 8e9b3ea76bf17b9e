import os
import sys


# Ensure project root is on sys.path so tests can import `main` and `models`
PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Keep a developer's .env from leaking into the tests
for name in ("HN_BASE_URL", "NEWS_LIMIT", "MAX_WORKERS", "LOG_LEVEL"):
    os.environ.pop(name, None)
