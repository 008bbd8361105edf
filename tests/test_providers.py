import threading
from unittest.mock import MagicMock

import pytest
import requests

from namelex.cache import ExpansionCache
from namelex.config import load_config
from namelex.errors import ParseError, TransientRemoteError
from namelex.providers import FallbackProvider, RemoteExpansionProvider, build_provider
from namelex.remote import InferenceClient, unwrap_response_text

from conftest import make_response, model_answer


def client_for(session, **kw):
    kw.setdefault("account_id", "acct")
    kw.setdefault("api_token", "secret-token")
    return InferenceClient(session=session, **kw)


def folded(names):
    return {n.casefold() for n in names}


# ---------- missing credentials ----------


@pytest.mark.parametrize("name", ["Liz", "bob", "Zebulon", "WILL"])
def test_without_credentials_result_equals_graph(graph, session, name):
    provider = RemoteExpansionProvider(client_for(session, api_token=None), fallback=graph)
    assert provider.expand(name) == graph.expand(name)
    session.post.assert_not_called()


def test_without_credentials_result_is_cached(graph, session):
    provider = RemoteExpansionProvider(client_for(session, account_id=" "), fallback=graph)
    provider.expand("Liz")
    assert "liz" in provider.cache
    assert provider.expand("LIZ") == graph.expand("Liz")


# ---------- successful remote expansion ----------


def test_remote_answer_is_parsed_and_includes_input(graph, session):
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    out = provider.expand("Liz")
    assert folded(out) == {"liz", "elizabeth", "betsy"}
    assert session.post.call_count == 1

    url = session.post.call_args.args[0]
    kwargs = session.post.call_args.kwargs
    assert url == "https://api.cloudflare.com/client/v4/accounts/acct/ai/run/@cf/meta/llama-3-8b-instruct"
    assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
    assert kwargs["timeout"] == 12.0
    assert [m["role"] for m in kwargs["json"]["messages"]] == ["system", "user"]
    assert "Liz" in kwargs["json"]["messages"][1]["content"]


def test_second_call_hits_cache(graph, session):
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    first = provider.expand("Liz")
    second = provider.expand("liz")
    third = provider.expand("  LIZ ")
    assert first == second == third
    assert session.post.call_count == 1


def test_returned_sets_do_not_alias_cache(graph, session):
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    provider.expand("Liz").add("mutated")
    assert "mutated" not in provider.expand("Liz")


def test_prose_wrapped_answer(graph, session):
    session.post.return_value = model_answer(
        'Here are the nicknames: ["Bob", "Robbie"]. Let me know if you need more.'
    )
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    assert provider.expand("Robert") == {"Robert", "Bob", "Robbie"}


# ---------- failures degrade to the graph ----------


def test_non_success_retries_once_with_prompt_shape(graph, session):
    session.post.side_effect = [
        make_response(400, {"errors": [{"message": "bad input"}]}),
        model_answer('{"canonical":"William","nicknames":["Bill","Liam"]}'),
    ]
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    assert folded(provider.expand("Will")) == {"will", "william", "bill", "liam"}
    assert session.post.call_count == 2

    retry_payload = session.post.call_args_list[1].kwargs["json"]
    assert "messages" not in retry_payload
    assert "Will" in retry_payload["input"]


def test_both_attempts_failing_falls_back(graph, session):
    session.post.return_value = make_response(503, "upstream unavailable")
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    assert provider.expand("Liz") == graph.expand("Liz")
    assert session.post.call_count == 2


def test_timeout_counts_as_failed_attempt(graph, session):
    session.post.side_effect = requests.Timeout("read timed out")
    provider = RemoteExpansionProvider(client_for(session, timeout=0.5), fallback=graph)
    assert provider.expand("bob") == graph.expand("bob")
    assert session.post.call_count == 2
    assert session.post.call_args.kwargs["timeout"] == 0.5


def test_retry_can_be_disabled(graph, session):
    session.post.return_value = make_response(500, "boom")
    provider = RemoteExpansionProvider(client_for(session, retry_shape="none"), fallback=graph)
    assert provider.expand("Liz") == graph.expand("Liz")
    assert session.post.call_count == 1


def test_unparseable_answer_falls_back_without_retry(graph, session):
    session.post.return_value = model_answer("Sorry, I cannot help with that.")
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    assert provider.expand("Liz") == graph.expand("Liz")
    assert session.post.call_count == 1


def test_fallback_result_is_cached(graph, session):
    session.post.return_value = make_response(500, "boom")
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    provider.expand("Liz")
    provider.expand("Liz")
    assert session.post.call_count == 2


@pytest.mark.parametrize(
    "failure",
    [ValueError("weird"), requests.ConnectionError("refused"), RuntimeError("bug")],
)
def test_expand_never_raises(graph, session, failure):
    session.post.side_effect = failure
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    assert provider.expand("Eliza") == graph.expand("Eliza")


@pytest.mark.parametrize("name", ["", "   ", None])
def test_empty_name(graph, session, name):
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    assert provider.expand(name) == set()
    session.post.assert_not_called()


def test_shared_cache_between_providers(graph, session):
    cache = ExpansionCache()
    RemoteExpansionProvider(client_for(session), fallback=graph, cache=cache).expand("Liz")
    other = RemoteExpansionProvider(client_for(session), fallback=graph, cache=cache)
    other.expand("LIZ")
    assert session.post.call_count == 1
    assert len(cache) == 1


def test_shared_provider_under_concurrent_requests(graph, session):
    provider = RemoteExpansionProvider(client_for(session), fallback=graph)
    spellings = ["Liz", "LIZ", "liz", "Bob", "BOB", "bob", "Will", "WILL"]
    results = {}
    errors = []
    start = threading.Barrier(16)

    def worker(i):
        try:
            start.wait()
            for name in spellings:
                results[(i, name)] = provider.expand(name)
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(results) == 16 * len(spellings)
    assert len(provider.cache) == 3
    for name in spellings:
        cached = provider.cache.get(name)
        # concurrent misses may each store an answer; they differ only in the input spelling
        assert all(folded(results[(i, name)]) == folded(cached) for i in range(16))


# ---------- building blocks ----------


class TestFallbackProvider:
    def test_primary_answer_wins(self, graph):
        primary = MagicMock()
        primary.expand.return_value = {"Liz", "Elisabet"}
        assert FallbackProvider(primary, graph).expand("Liz") == {"Liz", "Elisabet"}

    def test_known_failure_uses_secondary(self, graph):
        primary = MagicMock()
        primary.expand.side_effect = ParseError("nothing usable")
        assert FallbackProvider(primary, graph).expand("bob") == graph.expand("bob")

    def test_unexpected_failure_uses_secondary(self, graph, caplog):
        primary = MagicMock()
        primary.expand.side_effect = KeyError("result")
        assert FallbackProvider(primary, graph).expand("bob") == graph.expand("bob")
        assert "Unexpected error" in caplog.text


class TestInferenceClient:
    def test_missing_credentials_are_not_configured(self, session):
        assert not InferenceClient(None, "t", session=session).configured
        assert not InferenceClient("a", "", session=session).configured
        assert InferenceClient("a", "t", session=session).configured

    def test_unknown_retry_shape_rejected(self, session):
        with pytest.raises(ValueError):
            InferenceClient("a", "t", retry_shape="messages", session=session)

    def test_exhausted_attempts_raise_transient_error(self, session):
        session.post.return_value = make_response(429, "slow down")
        with pytest.raises(TransientRemoteError):
            client_for(session).complete_nicknames("Liz")

    def test_token_never_logged(self, session, caplog):
        session.post.return_value = make_response(401, "unauthorized")
        with pytest.raises(TransientRemoteError):
            client_for(session).complete_nicknames("Liz")
        assert "secret-token" not in caplog.text


@pytest.mark.parametrize(
    "body, expected",
    [
        ('{"result": {"response": "[\\"Liz\\"]"}}', '["Liz"]'),
        ('{"result": {"output_text": "hello"}}', "hello"),
        ('{"result": {"response": {"nicknames": ["Liz"]}}}', '{"nicknames": ["Liz"]}'),
        ("plain text answer", "plain text answer"),
        ('{"other": 1}', '{"other": 1}'),
    ],
)
def test_unwrap_response_text(body, expected):
    assert unwrap_response_text(body) == expected


# ---------- factory ----------


def test_build_provider_local_returns_graph(graph):
    cfg = load_config(env={})
    cfg.provider = "local"
    assert build_provider(cfg, graph) is graph


def test_build_provider_hybrid_reads_credentials(graph, session):
    cfg = load_config(env={"CLOUDFLARE_ACCOUNT_ID": "acct", "CLOUDFLARE_API_TOKEN": "tok"})
    provider = build_provider(cfg, graph, session=session)
    assert isinstance(provider, RemoteExpansionProvider)
    assert provider.client.configured
    provider.expand("Liz")
    assert session.post.call_count == 1
