"""Tests for StatusPoller."""

import asyncio

import httpx
import pytest

from mlwizard.error_handling import ApiError
from mlwizard.jobs.models import ExperimentStatus
from mlwizard.jobs.poller import PollerState, PollOutcome, StatusPoller, evaluate_status


class ScriptedClient:
    """check_status double that replays a script per experiment.

    Script items are payload dicts, exceptions to raise, or an
    ``asyncio.Event`` to wait on. The last item repeats.
    """

    def __init__(self, scripts):
        self.scripts = {key: list(items) for key, items in scripts.items()}
        self.calls: list[str] = []

    async def check_status(self, experiment_id):
        self.calls.append(experiment_id)
        script = self.scripts[experiment_id]
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, asyncio.Event):
            await item.wait()
            return {"status": "running"}
        if isinstance(item, Exception):
            raise item
        return item


def make_poller(client, **kwargs):
    events = {"updates": [], "resolved": [], "timeouts": []}
    poller = StatusPoller(
        client,
        interval=0,
        on_update=lambda exp_id, payload: events["updates"].append((exp_id, payload)),
        on_resolved=events["resolved"].append,
        on_soft_timeout=events["timeouts"].append,
        **kwargs,
    )
    return poller, events


async def _outcome(poller):
    return await asyncio.wait_for(poller.wait(), timeout=2)


@pytest.mark.parametrize(
    "payload,status,error",
    [
        ({"status": "success"}, ExperimentStatus.SUCCESS, None),
        ({"status": "completed"}, ExperimentStatus.COMPLETED, None),
        ({"status": "running", "hasTrainingResults": True}, ExperimentStatus.COMPLETED, None),
        ({"status": "failed"}, ExperimentStatus.FAILED, "Training failed"),
        (
            {"status": "running", "error_message": "Out of memory"},
            ExperimentStatus.FAILED,
            "Out of memory",
        ),
    ],
)
def test_evaluate_status_terminal(payload, status, error):
    result, outcome = evaluate_status("exp-1", payload, ExperimentStatus.RUNNING)
    assert result is status
    assert outcome.status is status
    assert outcome.error_message == error


def test_evaluate_status_non_terminal():
    status, outcome = evaluate_status(
        "exp-1", {"status": "submitted"}, ExperimentStatus.RUNNING
    )
    assert status is ExperimentStatus.RUNNING
    assert outcome is None


@pytest.mark.asyncio
async def test_polls_until_success():
    client = ScriptedClient(
        {"exp-1": [{"status": "processing"}, {"status": "running"}, {"status": "success"}]}
    )
    poller, events = make_poller(client)

    poller.start("exp-1")
    outcome = await _outcome(poller)

    assert outcome == PollOutcome(
        "exp-1", ExperimentStatus.SUCCESS, None, {"status": "success"}
    )
    assert outcome.succeeded
    assert poller.state is PollerState.RESOLVED_SUCCESS
    assert client.calls == ["exp-1"] * 3
    assert [payload["status"] for _, payload in events["updates"]] == [
        "processing",
        "running",
        "success",
    ]
    assert events["resolved"] == [outcome]


@pytest.mark.asyncio
async def test_error_message_fails_run():
    client = ScriptedClient(
        {"exp-1": [{"status": "running", "error_message": "CUDA out of memory"}]}
    )
    poller, events = make_poller(client)

    poller.start("exp-1")
    outcome = await _outcome(poller)

    assert not outcome.succeeded
    assert outcome.error_message == "CUDA out of memory"
    assert poller.state is PollerState.RESOLVED_FAILURE
    assert events["resolved"] == [outcome]


@pytest.mark.asyncio
async def test_errors_are_retried():
    client = ScriptedClient(
        {
            "exp-1": [
                ApiError("bad gateway", status_code=502),
                httpx.ConnectError("refused"),
                {"status": "completed"},
            ]
        }
    )
    poller, _ = make_poller(client)

    poller.start("exp-1")
    outcome = await _outcome(poller)

    assert outcome.status is ExperimentStatus.COMPLETED
    assert poller.consecutive_errors == 0
    assert poller.attempts == 3


@pytest.mark.asyncio
async def test_max_errors_gives_up():
    client = ScriptedClient({"exp-1": [ApiError("down", status_code=503)]})
    poller, _ = make_poller(client, max_errors=3)

    poller.start("exp-1")
    outcome = await _outcome(poller)

    assert outcome.status is ExperimentStatus.FAILED
    assert "server might be unavailable" in outcome.error_message
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_max_attempts_gives_up():
    client = ScriptedClient({"exp-1": [{"status": "running"}]})
    poller, _ = make_poller(client, max_attempts=2)

    poller.start("exp-1")
    outcome = await _outcome(poller)

    assert outcome.status is ExperimentStatus.FAILED
    assert "2 status checks" in outcome.error_message


@pytest.mark.asyncio
async def test_soft_timeout_keeps_polling():
    client = ScriptedClient(
        {"exp-1": [{"status": "running"}, {"status": "running"}, {"status": "success"}]}
    )
    poller, events = make_poller(client, soft_timeout=0)

    poller.start("exp-1")
    outcome = await _outcome(poller)

    assert outcome.succeeded
    assert poller.timed_out
    assert events["timeouts"] == ["exp-1"]


@pytest.mark.asyncio
async def test_stop_cancels_and_releases_waiters():
    client = ScriptedClient({"exp-1": [asyncio.Event()]})
    poller, events = make_poller(client)

    poller.start("exp-1")
    waiter = asyncio.create_task(poller.wait())
    while not client.calls:
        await asyncio.sleep(0)
    poller.stop()

    assert await asyncio.wait_for(waiter, timeout=2) is None
    assert poller.state is PollerState.CANCELLED
    assert events["resolved"] == []


@pytest.mark.asyncio
async def test_restart_replaces_previous_experiment():
    client = ScriptedClient(
        {"exp-1": [asyncio.Event()], "exp-2": [{"status": "success"}]}
    )
    poller, events = make_poller(client)

    poller.start("exp-1")
    while not client.calls:
        await asyncio.sleep(0)
    poller.start("exp-2")
    outcome = await _outcome(poller)

    assert outcome.experiment_id == "exp-2"
    assert [exp_id for exp_id, _ in events["updates"]] == ["exp-2"]
    assert [o.experiment_id for o in events["resolved"]] == ["exp-2"]
    await poller.aclose()


@pytest.mark.asyncio
async def test_response_after_stop_is_dropped():
    client = ScriptedClient({"exp-1": [{"status": "success"}]})
    poller, events = make_poller(client)
    poller.on_update = lambda exp_id, payload: poller.stop()

    poller.start("exp-1")
    assert await _outcome(poller) is None

    assert poller.state is PollerState.CANCELLED
    assert events["resolved"] == []


@pytest.mark.asyncio
async def test_wait_without_start():
    poller, _ = make_poller(ScriptedClient({}))
    assert await poller.wait() is None
    assert poller.state is PollerState.IDLE


@pytest.mark.asyncio
async def test_external_resolve_ends_polling():
    client = ScriptedClient({"exp-1": [asyncio.Event()]})
    poller, events = make_poller(client)

    poller.start("exp-1")
    while not client.calls:
        await asyncio.sleep(0)
    resolved = poller.resolve(PollOutcome("exp-1", ExperimentStatus.COMPLETED))

    assert resolved
    assert poller.state is PollerState.RESOLVED_SUCCESS
    assert (await _outcome(poller)).status is ExperimentStatus.COMPLETED
    assert [o.experiment_id for o in events["resolved"]] == ["exp-1"]
    assert not poller.resolve(PollOutcome("exp-1", ExperimentStatus.FAILED))
