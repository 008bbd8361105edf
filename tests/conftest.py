import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from namelex.graph import NameEquivalenceGraph

DATA = Path(__file__).parent / "data"
ROOT = Path(__file__).parent.parent

SEED = {
    "elizabeth": ["liz", "beth", "lizzy", "eliza"],
    "robert": ["rob", "bob", "bobby"],
    "william": ["bill", "will", "billy"],
}


def make_response(status: int = 200, body=None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r.reason = "OK" if status < 400 else "Error"
    text = body if isinstance(body, str) else json.dumps(body or {})
    r._content = text.encode("utf-8")
    r.encoding = "utf-8"
    return r


def model_answer(text: str, status: int = 200) -> requests.Response:
    return make_response(status, {"success": True, "result": {"response": text}})


@pytest.fixture
def graph():
    return NameEquivalenceGraph.from_mapping(SEED)


@pytest.fixture
def session():
    s = MagicMock(spec=requests.Session)
    s.post.return_value = model_answer('{"canonical":"Elizabeth","nicknames":["Liz","Betsy"]}')
    return s


class FakeBackend:
    def __init__(self, hits=None):
        self.hits = hits or []
        self.ensured = []
        self.added = []
        self.queries = []

    def ensure_index(self, name, primary_key):
        self.ensured.append((name, primary_key))

    def add_documents(self, index_name, documents):
        self.added.append((index_name, list(documents)))

    def search(self, index_name, query, limit):
        self.queries.append((index_name, query, limit))
        return {"hits": self.hits[:limit]}


@pytest.fixture
def backend():
    return FakeBackend()
