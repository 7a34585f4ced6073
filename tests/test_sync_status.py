"""
Sync status resolution: health check first, then quota, then the supervisor.
"""
from types import SimpleNamespace

from explorer_api.services.sync_status import (
    STOPPED,
    TRANSACTION_QUOTA_REACHED,
    UNREACHABLE,
    resolve_sync_status,
    rpc_is_unreachable,
)


class Quota:
    def __init__(self, reached=False):
        self.reached = reached
        self.calls = 0

    async def has_reached_transaction_quota(self, explorer):
        self.calls += 1
        return self.reached


class FailingQuota:
    async def has_reached_transaction_quota(self, explorer):
        raise RuntimeError("quota store is down")


def _explorer(reachable=None, slug="my-explorer"):
    health_check = SimpleNamespace(is_reachable=reachable) if reachable is not None else None
    return SimpleNamespace(slug=slug, workspace=SimpleNamespace(rpc_health_check=health_check))


def test_rpc_is_unreachable():
    assert rpc_is_unreachable(_explorer(reachable=False))
    assert not rpc_is_unreachable(_explorer(reachable=True))
    assert not rpc_is_unreachable(_explorer())
    assert not rpc_is_unreachable(SimpleNamespace(slug="x", workspace=None))


async def test_unreachable_wins_over_quota_and_process(supervisor):
    supervisor.processes["my-explorer"] = "online"
    quota = Quota(reached=True)

    assert await resolve_sync_status(_explorer(reachable=False), quota, supervisor) == UNREACHABLE
    assert quota.calls == 0


async def test_unreachable_does_not_consult_failing_quota(supervisor):
    assert await resolve_sync_status(_explorer(reachable=False), FailingQuota(), supervisor) == UNREACHABLE


async def test_quota_wins_over_process(supervisor):
    supervisor.processes["my-explorer"] = "online"
    assert await resolve_sync_status(_explorer(reachable=True), Quota(reached=True), supervisor) == TRANSACTION_QUOTA_REACHED


async def test_process_status_is_returned(supervisor):
    supervisor.processes["my-explorer"] = "errored"
    assert await resolve_sync_status(_explorer(), Quota(), supervisor) == "errored"


async def test_stopped_without_process(supervisor):
    assert await resolve_sync_status(_explorer(), Quota(), supervisor) == STOPPED
