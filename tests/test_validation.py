"""
SafeHarbor Validation Engine Tests

Each rule is checked against boundary values: the last accepted input and
the first rejected one.
"""

import unittest

from safeharbor import (
    AccountInScope,
    BountyError,
    BountyTerms,
    Chain,
    Contact,
    ErrorKind,
    SafeHarborError,
    ValidationPolicy,
    validate_account_address,
    validate_agreement_uri,
    validate_bounty_terms,
    validate_chains,
    validate_contact_details,
    validate_network_id,
    validate_protocol_name,
)
from safeharbor.agreement import AgreementData
from safeharbor.validation import (
    first_error,
    validate_agreement_data,
    validate_network_list,
    validate_scoped_accounts,
)

from factories import EVM_NET, SOL_ADDR, SOL_NET, agreement_data, evm


class _Recognizes:
    def __init__(self, *networks):
        self.networks = networks

    def is_recognized(self, network_id):
        return network_id in self.networks


def terms(**overrides) -> BountyTerms:
    values = dict(bounty_percentage=10, bounty_cap_usd=100000)
    values.update(overrides)
    return BountyTerms(**values)


class TestBountyTerms(unittest.TestCase):

    def test_percentage_range(self):
        for pct in range(0, 101):
            self.assertIsNone(first_error(validate_bounty_terms, terms(bounty_percentage=pct)))

    def test_percentage_above_hundred_rejected(self):
        with self.assertRaises(BountyError) as ctx:
            validate_bounty_terms(terms(bounty_percentage=101))
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_BOUNTY_PERCENTAGE)

    def test_negative_percentage_rejected(self):
        self.assertEqual(first_error(validate_bounty_terms, terms(bounty_percentage=-1)),
                         ErrorKind.INVALID_BOUNTY_PERCENTAGE)

    def test_aggregate_cap_with_retainable_rejected(self):
        kind = first_error(validate_bounty_terms,
                           terms(aggregate_bounty_cap_usd=500000, retainable=True))
        self.assertEqual(kind, ErrorKind.CONFLICTING_RETAINABLE_AND_AGGREGATE_CAP)

    def test_retainable_without_aggregate_cap_accepted(self):
        self.assertIsNone(first_error(validate_bounty_terms, terms(retainable=True)))

    def test_non_bool_retainable_rejected(self):
        self.assertEqual(first_error(validate_bounty_terms, terms(retainable="yes")),
                         ErrorKind.CONFLICTING_RETAINABLE_AND_AGGREGATE_CAP)

    def test_aggregate_below_cap_rejected_by_default(self):
        below = terms(bounty_cap_usd=100000, aggregate_bounty_cap_usd=50000)
        self.assertEqual(first_error(validate_bounty_terms, below), ErrorKind.INVALID_AGGREGATE_BOUNTY_CAP)

        relaxed = ValidationPolicy(enforce_aggregate_floor=False)
        self.assertIsNone(first_error(validate_bounty_terms, below, relaxed))

    def test_zero_cap_only_rejected_when_required(self):
        self.assertIsNone(first_error(validate_bounty_terms, terms(bounty_cap_usd=0)))
        strict = ValidationPolicy(require_bounty_cap=True)
        self.assertEqual(first_error(validate_bounty_terms, terms(bounty_cap_usd=0), strict),
                         ErrorKind.INVALID_BOUNTY_CAP)

    def test_cap_outside_u64_rejected(self):
        self.assertEqual(first_error(validate_bounty_terms, terms(bounty_cap_usd=2 ** 64)),
                         ErrorKind.INVALID_BOUNTY_CAP)

    def test_diligence_requirements_length(self):
        self.assertIsNone(first_error(validate_bounty_terms, terms(diligence_requirements="d" * 512)))
        self.assertEqual(first_error(validate_bounty_terms, terms(diligence_requirements="d" * 513)),
                         ErrorKind.FIELD_LENGTH_EXCEEDED)


class TestAgreementFields(unittest.TestCase):

    def test_blank_protocol_names_rejected(self):
        for name in ("", "   ", "\t"):
            self.assertEqual(first_error(validate_protocol_name, name), ErrorKind.INVALID_PROTOCOL_NAME)

    def test_protocol_name_length_in_bytes(self):
        self.assertEqual(validate_protocol_name("a" * 64), "a" * 64)
        self.assertEqual(first_error(validate_protocol_name, "a" * 65), ErrorKind.INVALID_PROTOCOL_NAME)
        # 32 two-byte characters is exactly 64 bytes
        self.assertIsNone(first_error(validate_protocol_name, "é" * 32))
        self.assertEqual(first_error(validate_protocol_name, "é" * 33), ErrorKind.INVALID_PROTOCOL_NAME)

    def test_contacts_required(self):
        self.assertEqual(first_error(validate_contact_details, []), ErrorKind.INVALID_CONTACT_DETAILS)

    def test_contact_count_bound(self):
        contacts = [Contact(name=f"c{i}", contact=f"c{i}@example.org") for i in range(17)]
        self.assertIsNone(first_error(validate_contact_details, contacts[:16]))
        self.assertEqual(first_error(validate_contact_details, contacts), ErrorKind.INVALID_CONTACT_DETAILS)

    def test_blank_contact_rejected(self):
        self.assertEqual(first_error(validate_contact_details, [Contact(name="Security", contact=" ")]),
                         ErrorKind.INVALID_CONTACT_DETAILS)

    def test_agreement_uri(self):
        self.assertEqual(validate_agreement_uri(""), "")
        self.assertEqual(validate_agreement_uri("https://acme.example/sh.pdf"), "https://acme.example/sh.pdf")
        self.assertEqual(first_error(validate_agreement_uri, "ftp://acme.example"),
                         ErrorKind.INVALID_AGREEMENT_URI)
        self.assertIsNone(first_error(validate_agreement_uri, "ftp://acme.example",
                                      ValidationPolicy(require_uri_scheme=False)))
        self.assertEqual(first_error(validate_agreement_uri, "ipfs://" + "q" * 250),
                         ErrorKind.INVALID_AGREEMENT_URI)


class TestNetworkIds(unittest.TestCase):

    def test_valid_ids(self):
        for network_id in (EVM_NET, "eip155:137", SOL_NET, "cosmos:cosmoshub-4"):
            self.assertEqual(validate_network_id(network_id), network_id)

    def test_malformed_ids(self):
        for network_id in ("eip155", "eip155:", ":1", "a:b:c", "eip155:abc", "eip155:-1", 1, None):
            self.assertEqual(first_error(validate_network_id, network_id), ErrorKind.INVALID_NETWORK_ID,
                             network_id)

    def test_too_long(self):
        self.assertEqual(first_error(validate_network_id, "cosmos:" + "x" * 58),
                         ErrorKind.FIELD_LENGTH_EXCEEDED)

    def test_network_list(self):
        self.assertEqual(validate_network_list([EVM_NET, SOL_NET, EVM_NET]), [EVM_NET, SOL_NET])
        self.assertEqual(first_error(validate_network_list, []), ErrorKind.INVALID_NETWORK_ID)
        self.assertEqual(first_error(validate_network_list, EVM_NET), ErrorKind.INVALID_NETWORK_ID)


class TestAccounts(unittest.TestCase):

    def test_eip155_shape(self):
        self.assertEqual(validate_account_address(evm(1), EVM_NET), evm(1))
        for bad in ("0x1234", "ab" * 21, SOL_ADDR, ""):
            self.assertEqual(first_error(validate_account_address, bad, EVM_NET),
                             ErrorKind.INVALID_ACCOUNT_PARAMS, bad)

    def test_solana_shape(self):
        self.assertEqual(validate_account_address(SOL_ADDR, SOL_NET), SOL_ADDR)
        self.assertEqual(first_error(validate_account_address, evm(1), SOL_NET),
                         ErrorKind.INVALID_ACCOUNT_PARAMS)

    def test_other_namespaces_only_need_a_value(self):
        self.assertEqual(validate_account_address("cosmos1xyz", "cosmos:cosmoshub-4"), "cosmos1xyz")

    def test_address_length(self):
        self.assertEqual(first_error(validate_account_address, "c" * 65, "cosmos:cosmoshub-4"),
                         ErrorKind.FIELD_LENGTH_EXCEEDED)

    def test_duplicate_accounts_rejected(self):
        accounts = [AccountInScope(evm(1)), AccountInScope(evm(1))]
        self.assertEqual(first_error(validate_scoped_accounts, accounts, EVM_NET),
                         ErrorKind.INVALID_ACCOUNT_PARAMS)

    def test_account_count_bound(self):
        accounts = [AccountInScope("0x" + f"{i:040x}") for i in range(65)]
        self.assertIsNone(first_error(validate_scoped_accounts, accounts[:64], EVM_NET))
        self.assertEqual(first_error(validate_scoped_accounts, accounts, EVM_NET),
                         ErrorKind.FIELD_LENGTH_EXCEEDED)


class TestChains(unittest.TestCase):

    def chain(self, network_id=EVM_NET, recovery=None, accounts=None):
        return Chain(network_id=network_id, asset_recovery_address=recovery or evm(0x11),
                     accounts=accounts if accounts is not None else [AccountInScope(evm(0x22))])

    def test_empty_chain_list_accepted(self):
        self.assertEqual(validate_chains([]), [])

    def test_duplicate_network_rejected(self):
        self.assertEqual(first_error(validate_chains, [self.chain(), self.chain()]),
                         ErrorKind.DUPLICATE_NETWORK_ID)

    def test_unrecognized_network_rejected(self):
        chains = [self.chain(), self.chain(SOL_NET, SOL_ADDR, [])]
        self.assertIsNone(first_error(validate_chains, chains, _Recognizes(EVM_NET, SOL_NET)))
        self.assertEqual(first_error(validate_chains, chains, _Recognizes(EVM_NET)),
                         ErrorKind.NETWORK_NOT_RECOGNIZED)

    def test_recovery_address_shape_checked(self):
        self.assertEqual(first_error(validate_chains, [self.chain(recovery="0xnope")]),
                         ErrorKind.INVALID_ACCOUNT_PARAMS)

    def test_chain_count_bound(self):
        chains = [self.chain(f"eip155:{i}") for i in range(33)]
        self.assertIsNone(first_error(validate_chains, chains[:32]))
        self.assertEqual(first_error(validate_chains, chains), ErrorKind.FIELD_LENGTH_EXCEEDED)


class TestAgreementData(unittest.TestCase):

    def test_full_agreement_valid(self):
        data = AgreementData.from_dict(agreement_data())
        self.assertIs(validate_agreement_data(data, _Recognizes(EVM_NET)), data)

    def test_first_failing_rule_reported(self):
        data = AgreementData.from_dict(agreement_data(protocol_name=" ", agreement_uri="ftp://x"))
        with self.assertRaises(SafeHarborError) as ctx:
            validate_agreement_data(data)
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_PROTOCOL_NAME)
        self.assertEqual(ctx.exception.field, "protocol_name")

    def test_missing_terms_rejected_when_parsing(self):
        with self.assertRaises(SafeHarborError) as ctx:
            AgreementData.from_dict({"protocol_name": "Acme"})
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_UPDATE_TYPE)

    def test_uri_and_chains_required(self):
        for name in ("agreement_uri", "chains"):
            data = agreement_data()
            del data[name]
            with self.assertRaises(SafeHarborError) as ctx:
                AgreementData.from_dict(data)
            self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_UPDATE_TYPE)
            self.assertEqual(ctx.exception.field, name)


if __name__ == "__main__":
    unittest.main()
