"""
SafeHarbor Address Derivation Tests

Record addresses are deterministic, off-curve, and bound to their seeds and
program id.
"""

import unittest

from safeharbor import (
    DEFAULT_PROGRAM_ID,
    AddressError,
    ErrorKind,
    Pubkey,
    SafeHarborError,
    b58decode,
    b58encode,
    derive_address,
    find_adoption_address,
    find_agreement_address,
    find_registry_address,
    network_id_hash,
    seed_component,
    sha256_digest,
    verify_network_id_hash,
)
from safeharbor.addressing import create_address, is_on_curve
from safeharbor.constants import ADOPTION_SEED, AGREEMENT_SEED, REGISTRY_SEED

from factories import EVM_NET, SOL_NET, keypair


class TestPubkey(unittest.TestCase):

    def test_base58_text_round_trip(self):
        key = keypair(3).pubkey
        self.assertEqual(Pubkey.from_string(str(key)), key)

    def test_leading_zero_bytes_encode_as_ones(self):
        self.assertEqual(b58encode(b"\x00\x01"), "12")
        self.assertEqual(b58decode("12"), b"\x00\x01")

    def test_rejects_wrong_length(self):
        with self.assertRaises(ValueError):
            Pubkey(b"\x01" * 31)

    def test_rejects_invalid_characters(self):
        with self.assertRaises(ValueError):
            Pubkey.from_string("not-a-key")

    def test_default_key(self):
        self.assertTrue(Pubkey.default().is_default())
        self.assertFalse(keypair(1).pubkey.is_default())


class TestDerivation(unittest.TestCase):

    def test_deterministic(self):
        creator = keypair(1).pubkey
        self.assertEqual(find_agreement_address(creator, 7), find_agreement_address(creator, 7))

    def test_address_is_off_curve(self):
        address, _ = find_registry_address()
        self.assertFalse(is_on_curve(address.to_bytes()))

    def test_bump_recreates_address(self):
        creator = keypair(1).pubkey
        address, bump = find_agreement_address(creator, 1)
        seeds = [AGREEMENT_SEED, creator.to_bytes(), (1).to_bytes(8, "little")]
        self.assertEqual(create_address(seeds, bump, DEFAULT_PROGRAM_ID), address)

    def test_registry_address_uses_registry_seed(self):
        self.assertEqual(find_registry_address(), derive_address([REGISTRY_SEED]))

    def test_nonce_separates_agreements(self):
        creator = keypair(1).pubkey
        a, _ = find_agreement_address(creator, 1)
        b, _ = find_agreement_address(creator, 2)
        self.assertNotEqual(a, b)

    def test_creator_separates_agreements(self):
        a, _ = find_agreement_address(keypair(1).pubkey, 1)
        b, _ = find_agreement_address(keypair(2).pubkey, 1)
        self.assertNotEqual(a, b)

    def test_adoption_seeded_by_network_hash(self):
        adopter = keypair(4).pubkey
        expected = derive_address([ADOPTION_SEED, adopter, network_id_hash(SOL_NET)])
        self.assertEqual(find_adoption_address(adopter, SOL_NET), expected)

    def test_one_adoption_address_per_network(self):
        adopter = keypair(4).pubkey
        a, _ = find_adoption_address(adopter, EVM_NET)
        b, _ = find_adoption_address(adopter, SOL_NET)
        self.assertNotEqual(a, b)

    def test_program_id_namespaces_addresses(self):
        other_program = Pubkey(sha256_digest(b"another program"))
        a, _ = find_registry_address()
        b, _ = find_registry_address(other_program)
        self.assertNotEqual(a, b)

    def test_nonce_must_be_u64(self):
        creator = keypair(1).pubkey
        for nonce in (-1, 2 ** 64, "1", True):
            with self.assertRaises(SafeHarborError) as ctx:
                find_agreement_address(creator, nonce)
            self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_ACCOUNT_PARAMS)

    def test_seed_longer_than_limit_rejected(self):
        with self.assertRaises(SafeHarborError) as ctx:
            derive_address([b"x" * 33])
        self.assertEqual(ctx.exception.kind, ErrorKind.FIELD_LENGTH_EXCEEDED)

    def test_too_many_seeds_rejected(self):
        with self.assertRaises(SafeHarborError) as ctx:
            derive_address([b"s"] * 16)
        self.assertEqual(ctx.exception.kind, ErrorKind.FIELD_LENGTH_EXCEEDED)

    def test_seed_component_hashes_long_values(self):
        long_value = "x" * 100
        self.assertEqual(seed_component(long_value), sha256_digest(long_value))
        self.assertEqual(seed_component("short"), b"short")


class TestNetworkIdHash(unittest.TestCase):

    def test_omitted_hash_is_computed(self):
        self.assertEqual(verify_network_id_hash(SOL_NET, None), network_id_hash(SOL_NET))

    def test_matching_hash_accepted_in_every_form(self):
        digest = network_id_hash(SOL_NET)
        for claimed in (digest, digest.hex(), "sha256:" + digest.hex()):
            self.assertEqual(verify_network_id_hash(SOL_NET, claimed), digest)

    def test_mismatch_rejected(self):
        with self.assertRaises(AddressError) as ctx:
            verify_network_id_hash(SOL_NET, network_id_hash(EVM_NET))
        self.assertEqual(ctx.exception.kind, ErrorKind.ADDRESS_HASH_MISMATCH)

    def test_malformed_hex_rejected(self):
        with self.assertRaises(SafeHarborError) as ctx:
            verify_network_id_hash(SOL_NET, "zz")
        self.assertEqual(ctx.exception.kind, ErrorKind.ADDRESS_HASH_MISMATCH)


if __name__ == "__main__":
    unittest.main()
