"""
SafeHarbor Capacity Planner Tests
"""

import unittest
from dataclasses import dataclass, field
from typing import List

from safeharbor import (
    AccountInScope,
    AdoptionRecord,
    CapacityError,
    CapacityPlanner,
    ChildContractScope,
    ErrorKind,
    encoded_size,
    record_size,
)
from safeharbor.capacity import transient

from factories import EVM_NET, evm, keypair


@dataclass
class _Sample:
    name: str
    values: List[int] = field(default_factory=list)
    allocated: int = transient(default=0)


def adoption(accounts: int) -> AdoptionRecord:
    return AdoptionRecord(
        adopter=keypair(5).pubkey,
        network_id=EVM_NET,
        agreement=keypair(6).pubkey,
        asset_recovery_address=evm(0x33),
        accounts=[AccountInScope("0x" + f"{i + 1:040x}") for i in range(accounts)],
    )


class TestEncodedSize(unittest.TestCase):

    def test_scalars(self):
        self.assertEqual(encoded_size(keypair(1).pubkey), 32)
        self.assertEqual(encoded_size(7), 8)
        self.assertEqual(encoded_size(True), 1)
        self.assertEqual(encoded_size(ChildContractScope.ALL), 1)
        self.assertEqual(encoded_size("abc"), 7)
        self.assertEqual(encoded_size("é"), 6)

    def test_containers(self):
        self.assertEqual(encoded_size([1, 2, 3]), 4 + 24)
        self.assertEqual(encoded_size(_Sample("ab", [1])), 6 + 12)

    def test_transient_fields_excluded(self):
        self.assertEqual(encoded_size(_Sample("ab", allocated=999)), encoded_size(_Sample("ab")))

    def test_unknown_type(self):
        with self.assertRaises(TypeError):
            encoded_size(1.5)

    def test_adoption_layout(self):
        # discriminator, adopter, network id, agreement, recovery address, account list
        self.assertEqual(record_size(adoption(1)), 8 + 32 + 12 + 32 + 46 + 4 + 47)


class TestPlanner(unittest.TestCase):

    def setUp(self):
        self.planner = CapacityPlanner()

    def test_small_records_get_fixed_headroom(self):
        budget = self.planner.plan(adoption(1))
        self.assertEqual(budget.required, 181)
        self.assertEqual(budget.allocated, 1205)
        self.assertEqual(budget.headroom, 1024)

    def test_large_records_get_proportional_headroom(self):
        budget = self.planner.plan(adoption(100))
        self.assertEqual(budget.allocated, budget.required + budget.required // 4)

    def test_allocation_capped_at_maximum(self):
        planner = CapacityPlanner(max_size=1000)
        budget = planner.plan(adoption(1))
        self.assertEqual(budget.allocated, 1000)

    def test_record_over_maximum_rejected(self):
        planner = CapacityPlanner(max_size=100)
        with self.assertRaises(CapacityError) as ctx:
            planner.plan(adoption(1))
        self.assertEqual(ctx.exception.kind, ErrorKind.INSUFFICIENT_CAPACITY)

    def test_ensure_fits(self):
        self.assertEqual(self.planner.ensure_fits(adoption(1), 181).headroom, 0)
        with self.assertRaises(CapacityError):
            self.planner.ensure_fits(adoption(2), 181)

    def test_resize_never_shrinks(self):
        self.assertEqual(self.planner.resize(adoption(1), 5000).allocated, 5000)
        self.assertEqual(self.planner.resize(adoption(1), 0).allocated, 1205)


if __name__ == "__main__":
    unittest.main()
