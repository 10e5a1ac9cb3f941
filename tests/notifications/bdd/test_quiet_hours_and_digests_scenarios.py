"""BDD tests for quiet hours and digest cadence."""

from pytest_bdd import scenarios

scenarios("features/quiet_hours_and_digests.feature")
