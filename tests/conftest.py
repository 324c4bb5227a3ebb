import sys
import types
import pathlib

import pytest

BASE_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))


def make_chunk(content):
    return types.SimpleNamespace(choices=[types.SimpleNamespace(delta=types.SimpleNamespace(content=content))])


class FakeOpenAI:
    """Stands in for AsyncOpenAI; each create() call plays the next scripted stream."""

    def __init__(self):
        self.scripts = []
        self.clients = []
        self.calls = []

    def script(self, parts, error=None):
        self.scripts.append((list(parts), error))

    def __call__(self, api_key):
        self.clients.append(api_key)
        return types.SimpleNamespace(
            chat=types.SimpleNamespace(completions=types.SimpleNamespace(create=self._create))
        )

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        parts, error = self.scripts.pop(0) if self.scripts else ([], None)

        async def _stream():
            for part in parts:
                yield make_chunk(part)
            if error is not None:
                raise error

        return _stream()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    monkeypatch.setenv("DOTENV_DISABLED", "1")
    for name in ("OPENAI_MODEL", "OPENAI_MAX_TOKENS", "OPENAI_TEMPERATURE"):
        monkeypatch.delenv(name, raising=False)
    from site_builder.services import session as session_svc

    session_svc.SESSIONS.clear()
    yield
    session_svc.SESSIONS.clear()


@pytest.fixture
def fake_openai(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test")
    import site_builder.services.generation as gen

    fake = FakeOpenAI()
    monkeypatch.setattr(gen, "AsyncOpenAI", fake)
    return fake
