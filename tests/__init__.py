# "tests" is a package so suites can import shared doubles as ``tests.helpers``.
# The repo root must be importable when pytest is started outside it.
import sys
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))
