"""
Startup sequence and run lifecycle tests.
"""

from __future__ import annotations

import threading
import unittest

from virtual_node import (
    HeartbeatSupervisor,
    Lease,
    LeaseMode,
    LeaseRegistrationError,
    LeaseSpec,
    NodeRegistrationError,
    NodeSpec,
    ObjectMeta,
    StartupCancelledError,
    StartupError,
    StoreUnavailableError,
    SupervisorAlreadyRunningError,
)

from .support import (
    WALL_START,
    FakeClock,
    RecordingLeaseStore,
    RecordingNodeStore,
    ScriptedStatusSource,
    fast_config,
    make_node,
)


class SupervisorStartupTest(unittest.TestCase):
    def setUp(self) -> None:
        self.stop = threading.Event()
        self.clock = FakeClock(self.stop, until=0)
        self.nodes = RecordingNodeStore(self.clock)
        self.leases = RecordingLeaseStore(self.clock)
        self.source = ScriptedStatusSource()

    def _supervisor(self, **config_overrides) -> HeartbeatSupervisor:
        config_overrides.setdefault("lease_store", self.leases)
        return HeartbeatSupervisor(
            self.source,
            make_node(),
            self.nodes,
            fast_config(**config_overrides),
            clock=self.clock,
        )

    def test_missing_node_is_created(self) -> None:
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        self.assertEqual(self.nodes.names(), ["vnode-1"])
        remote = self.nodes.get("vnode-1")
        self.assertTrue(remote.metadata.uid)
        self.assertEqual(remote.status.capacity, {"cpu": "8", "memory": "32Gi"})
        self.assertEqual(supervisor.node.metadata.uid, remote.metadata.uid)
        self.assertTrue(supervisor.ready.is_set())

    def test_existing_node_is_updated_not_recreated(self) -> None:
        existing = make_node(ready="False")
        existing.spec = NodeSpec(provider_id="remote://cluster-a")
        self.nodes.create(existing)
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        self.assertEqual([name for name, _ in self.nodes.calls].count("create"), 1)
        remote = self.nodes.get("vnode-1")
        self.assertEqual(remote.status.condition("Ready").status, "True")
        self.assertEqual(remote.spec.provider_id, "remote://cluster-a")
        self.assertEqual(supervisor.stats()["status_updates"], 1)

    def test_initial_status_stamps_condition_heartbeats(self) -> None:
        self.nodes.create(make_node())
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        condition = self.nodes.get("vnode-1").status.condition("Ready")
        self.assertEqual(condition.last_heartbeat_time, WALL_START)

    def test_node_registration_failure_is_fatal(self) -> None:
        self.nodes.fail_gets.append(StoreUnavailableError("control plane down"))
        supervisor = self._supervisor()

        with self.assertRaises(NodeRegistrationError):
            supervisor.run(self.stop)
        self.assertFalse(supervisor.ready.is_set())
        self.assertFalse(supervisor.is_running)

    def test_registration_skips_status_error_handler(self) -> None:
        handled: list[Exception] = []
        self.nodes.create(make_node())
        self.nodes.fail_patches.append(StoreUnavailableError("timeout"))
        supervisor = self._supervisor(status_error_handler=handled.append)

        with self.assertRaises(StartupError):
            supervisor.run(self.stop)
        self.assertEqual(handled, [])

    def test_lease_created_with_defaults(self) -> None:
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        lease = self.leases.get("vnode-1")
        self.assertIs(supervisor.lease_mode, LeaseMode.SUPPORTED)
        self.assertEqual(lease.spec.holder_identity, "vnode-1")
        self.assertEqual(lease.spec.lease_duration_seconds, 50)
        self.assertEqual(lease.spec.renew_time, WALL_START)

    def test_base_lease_template_is_respected(self) -> None:
        base = Lease(
            metadata=ObjectMeta(name="vnode-1-lease", labels={"owner": "liqo"}),
            spec=LeaseSpec(lease_duration_seconds=40),
        )
        supervisor = self._supervisor(base_lease=base)
        supervisor.run(self.stop)

        lease = self.leases.get("vnode-1-lease")
        self.assertEqual(lease.metadata.labels, {"owner": "liqo"})
        self.assertEqual(lease.spec.lease_duration_seconds, 40)
        self.assertEqual(lease.spec.holder_identity, "vnode-1")
        self.assertIsNone(base.spec.holder_identity)

    def test_existing_lease_is_replaced(self) -> None:
        self.leases.create(
            Lease(
                metadata=ObjectMeta(name="vnode-1"),
                spec=LeaseSpec(holder_identity="previous-owner", lease_duration_seconds=5),
            )
        )
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        self.assertIs(supervisor.lease_mode, LeaseMode.SUPPORTED)
        self.assertEqual([name for name, _ in self.leases.calls], ["create", "create", "delete", "create"])
        self.assertEqual(self.leases.get("vnode-1").spec.holder_identity, "vnode-1")

    def test_unsupported_leases_fall_back_to_status_updates(self) -> None:
        self.leases.supported = False
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        self.assertIs(supervisor.lease_mode, LeaseMode.UNSUPPORTED)
        self.assertIsNone(supervisor.lease)
        self.assertTrue(supervisor.ready.is_set())

    def test_lease_probe_failure_is_fatal(self) -> None:
        self.leases.fail_creates.append(StoreUnavailableError("forbidden"))
        supervisor = self._supervisor()

        with self.assertRaises(LeaseRegistrationError):
            supervisor.run(self.stop)
        self.assertFalse(supervisor.ready.is_set())
        self.assertIs(supervisor.lease_mode, LeaseMode.UNKNOWN)

    def test_stop_before_ready_cancels_startup(self) -> None:
        self.stop.set()
        supervisor = self._supervisor()

        with self.assertRaises(StartupCancelledError):
            supervisor.run(self.stop)
        self.assertFalse(supervisor.ready.is_set())
        self.assertEqual([name for name, _ in self.leases.calls], [])

    def test_run_after_ready_is_rejected(self) -> None:
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        with self.assertRaises(SupervisorAlreadyRunningError):
            supervisor.run(threading.Event())

    def test_notification_subscription_happens_at_startup(self) -> None:
        supervisor = self._supervisor()
        supervisor.run(self.stop)

        self.assertEqual(len(self.source.callbacks), 1)

    def test_empty_node_name_is_rejected(self) -> None:
        node = make_node()
        node.metadata.name = ""
        with self.assertRaises(ValueError):
            HeartbeatSupervisor(self.source, node, self.nodes)


if __name__ == "__main__":
    unittest.main()
