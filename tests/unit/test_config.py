"""
Configuration validation tests.
"""

from __future__ import annotations

import unittest

from virtual_node import (
    InMemoryLeaseStore,
    Lease,
    LeaseRetryConfig,
    ObservabilityConfig,
    SupervisorConfig,
    SupervisorConfigurationError,
)


class SupervisorConfigTest(unittest.TestCase):
    def test_defaults(self) -> None:
        config = SupervisorConfig()
        self.assertEqual(config.ping_interval_seconds, 10.0)
        self.assertEqual(config.status_interval_seconds, 60.0)
        self.assertIsNone(config.lease_store)
        self.assertEqual(config.effective_lease_duration_seconds, 50)

    def test_explicit_lease_duration_wins(self) -> None:
        config = SupervisorConfig(lease_duration_seconds=7)
        self.assertEqual(config.effective_lease_duration_seconds, 7)

    def test_short_ping_interval_keeps_positive_lease_duration(self) -> None:
        config = SupervisorConfig(ping_interval_seconds=0.05)
        self.assertEqual(config.effective_lease_duration_seconds, 1)

    def test_invalid_values_are_rejected(self) -> None:
        cases = [
            {"ping_interval_seconds": 0},
            {"status_interval_seconds": -1},
            {"poll_interval_seconds": 0},
            {"base_lease": Lease()},
            {"lease_duration_seconds": 0},
            {"status_error_handler": "not callable"},
            {"lease_retry": LeaseRetryConfig(max_attempts=0)},
            {"lease_retry": LeaseRetryConfig(initial_backoff_seconds=1.0, max_backoff_seconds=0.5)},
            {"lease_retry": LeaseRetryConfig(backoff_factor=0.5)},
            {"observability": ObservabilityConfig(trace_history_size=0)},
            {"observability": ObservabilityConfig(port=70000)},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(SupervisorConfigurationError):
                    SupervisorConfig(**overrides)

    def test_configuration_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            SupervisorConfig(ping_interval_seconds=-5)

    def test_base_lease_with_store_is_accepted(self) -> None:
        config = SupervisorConfig(lease_store=InMemoryLeaseStore(), base_lease=Lease())
        self.assertIsNotNone(config.base_lease)

    def test_backoff_is_capped(self) -> None:
        retry = LeaseRetryConfig(initial_backoff_seconds=0.1, max_backoff_seconds=0.3)
        self.assertEqual([retry.delay_for(n) for n in (1, 2, 3, 4)], [0.1, 0.2, 0.3, 0.3])


if __name__ == "__main__":
    unittest.main()
