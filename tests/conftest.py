import sys
from pathlib import Path
import pytest

# Ensure project root is on sys.path so tests can import the `linkittydo` package
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_shared_state():
	# Sessions and cached synonym lists are process-wide; isolate tests from each other
	from linkittydo import deps
	from linkittydo.cache import get_cache
	deps.get_game_service().store.clear()
	get_cache().clear()
	yield
	try:
		from linkittydo.main import app
		app.dependency_overrides.clear()
	except Exception:
		pass
