import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from axon.client.environments import EnvironmentSet, substitute
from axon.client.history import History
from axon.client.models import BasicAuth, BearerAuth, ErrorResponse, ResponseSnapshot
from axon.client.pipeline import ExecutionPipeline, build_url, resolve_auth
from axon.client.workspace import Workspace
from axon.errors import ConnectionFailed, NetworkError, OperationFailed, ValidationError


def _ok(status=200, data=None):
    return ResponseSnapshot(status=status, status_text="OK", headers={"content-type": "application/json"},
                            data=data or {"ok": True}, duration=3)


@pytest.fixture()
def setup():
    workspace = Workspace()
    environments = EnvironmentSet()
    history = History()
    proxy = AsyncMock(return_value=_ok())
    pipeline = ExecutionPipeline(workspace, environments, history, proxy)
    return pipeline, workspace, environments, history, proxy


def test_build_url_picks_separator():
    assert build_url("https://api.test/users", {"page": "2"}) == "https://api.test/users?page=2"
    assert build_url("https://api.test/users?a=1", {"b": "2"}) == "https://api.test/users?a=1&b=2"
    assert build_url("https://api.test/users", {"empty": ""}) == "https://api.test/users"


def test_resolve_auth_drops_incomplete_configs():
    assert resolve_auth(BasicAuth(username="u")).type == "none"
    assert resolve_auth(BasicAuth(username="u", password="p")) == BasicAuth(username="u", password="p")
    assert resolve_auth(BearerAuth()).type == "none"
    assert resolve_auth(BearerAuth(token="t")).type == "bearer"


def test_substitute_leaves_unknown_variables():
    variables = {"host": "api.test"}
    assert substitute("https://{{host}}/{{missing}}", variables) == "https://api.test/{{missing}}"
    assert substitute("{{ host }}", variables) == "{{ host }}"
    assert substitute(None, variables) is None


def test_execute_success_records_one_history_item(setup):
    pipeline, workspace, environments, history, proxy = setup
    environments.add("dev", {"host": "api.test", "token": "s3cret"}, activate=True)
    tab = workspace.open_blank()
    workspace.update(tab.id, {
        "url": "https://{{host}}/users",
        "params": {"q": "{{missing}}", "page": "1"},
        "headers": {"X-Env": "{{host}}"},
        "auth": BearerAuth(token="{{token}}"),
        "method": "post",
        "body": '{"host": "{{host}}"}',
    })

    result = asyncio.run(pipeline.execute(tab.id))

    sent = proxy.await_args.args[0]
    assert sent["url"] == "https://api.test/users?q=%7B%7Bmissing%7D%7D&page=1"
    assert sent["method"] == "POST"
    assert sent["headers"] == {"X-Env": "api.test"}
    assert sent["auth"] == {"type": "bearer", "token": "s3cret"}
    assert sent["body"] == '{"host": "api.test"}'

    assert not result.failed
    assert tab.response is result.response
    assert tab.response.status == 200
    assert len(history) == 1
    assert history.items[0].response.status == 200
    assert history.items[0].url == sent["url"]


def test_execute_upstream_error_is_not_a_failure(setup):
    pipeline, workspace, _, history, proxy = setup
    proxy.return_value = _ok(status=500, data="boom")
    tab = workspace.open_blank()
    workspace.update(tab.id, {"url": "https://api.test"})

    result = asyncio.run(pipeline.execute(tab.id))
    assert not result.failed
    assert result.response.status == 500
    assert len(history) == 1


def test_execute_connection_failure(setup):
    pipeline, workspace, _, history, proxy = setup
    proxy.side_effect = ConnectionFailed("getaddrinfo ENOTFOUND down.invalid")
    tab = workspace.open_blank()
    workspace.update(tab.id, {"url": "http://down.invalid"})

    result = asyncio.run(pipeline.execute(tab.id))

    assert result.failed
    assert isinstance(tab.response, ErrorResponse)
    assert tab.response.error is True
    assert tab.response.status == 502
    assert len(history) == 1
    recorded = history.items[0].response
    assert recorded.status == 502
    assert not recorded.ok
    assert recorded.data == {"error": "getaddrinfo ENOTFOUND down.invalid"}


def test_execute_empty_url_fails_fast(setup):
    pipeline, workspace, _, history, proxy = setup
    tab = workspace.open_blank()
    workspace.update(tab.id, {"url": "   "})

    with pytest.raises(ValidationError):
        asyncio.run(pipeline.execute(tab.id))
    proxy.assert_not_awaited()
    assert len(history) == 0
    assert tab.response is None


def test_execute_tab_closed_in_flight(setup):
    pipeline, workspace, _, history, proxy = setup
    tab = workspace.open_blank()
    workspace.update(tab.id, {"url": "https://api.test"})

    async def close_then_answer(request):
        workspace.close(tab.id)
        return _ok()

    proxy.side_effect = close_then_answer
    result = asyncio.run(pipeline.execute(tab.id))

    assert workspace.tabs == []
    assert result.response.status == 200
    assert len(history) == 1


def test_history_limit_and_remote_failure_tolerated():
    remote = MagicMock()
    remote.record_history.side_effect = OperationFailed("offline")
    history = History(limit=3, remote=remote)

    for index in range(5):
        history.record(f"https://api.test/{index}", "GET", {})

    assert [item.url for item in history.items] == [
        "https://api.test/4",
        "https://api.test/3",
        "https://api.test/2",
    ]
    assert remote.record_history.call_count == 5

    history.delete(history.items[0].id)
    assert len(history) == 2
    history.clear()
    assert history.items == []


def test_execute_unexpected_proxy_error_is_recorded(setup):
    pipeline, workspace, _, history, proxy = setup
    proxy.side_effect = KeyError("status")
    tab = workspace.open_blank()
    workspace.update(tab.id, {"url": "https://api.test"})

    result = asyncio.run(pipeline.execute(tab.id))

    assert result.failed
    assert isinstance(tab.response, ErrorResponse)
    assert tab.response.status == NetworkError.status_code
    assert len(history) == 1
    recorded = history.items[0].response
    assert recorded.error is True
    assert recorded.status_text == "NetworkError"
    assert recorded.data == {"error": "'status'"}


def test_history_mirror_does_not_block_other_tabs():
    release = threading.Event()
    released = []
    threads = []

    def record_history(payload):
        threads.append(threading.current_thread())
        released.append(release.wait(timeout=5))

    remote = MagicMock()
    remote.record_history.side_effect = record_history

    async def answer(request):
        if request["url"].endswith("/slow"):
            await asyncio.sleep(0.05)
            release.set()
        return _ok()

    workspace = Workspace()
    history = History(remote=remote)
    pipeline = ExecutionPipeline(workspace, EnvironmentSet(), history, answer)
    fast = workspace.open_blank()
    workspace.update(fast.id, {"url": "https://api.test/fast"})
    slow = workspace.open_blank()
    workspace.update(slow.id, {"url": "https://api.test/slow"})

    async def run_both():
        return await asyncio.gather(pipeline.execute(fast.id), pipeline.execute(slow.id))

    results = asyncio.run(run_both())

    assert [result.failed for result in results] == [False, False]
    # The fast tab's mirror waits for the slow tab's proxy call to finish.
    assert released == [True, True]
    assert all(thread is not threading.main_thread() for thread in threads)
    assert [item.url for item in history.items] == ["https://api.test/slow", "https://api.test/fast"]
