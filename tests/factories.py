"""Shared builders for SafeHarbor tests."""

from safeharbor import Keypair, SafeHarborProgram

EVM_NET = "eip155:1"
POLYGON_NET = "eip155:137"
SOL_NET = "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp"
SOL_ADDR = "So11111111111111111111111111111111111111112"
SOL_ADDR_2 = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


def keypair(n: int) -> Keypair:
    """Deterministic identity number n."""
    return Keypair.from_seed(bytes([n]) * 32)


def evm(n: int) -> str:
    return "0x" + f"{n:02x}" * 20


def bounty_terms(**overrides) -> dict:
    terms = {
        "bounty_percentage": 10,
        "bounty_cap_usd": 100000,
        "aggregate_bounty_cap_usd": 0,
        "retainable": False,
        "identity_requirement": "Named",
        "diligence_requirements": "KYC",
    }
    terms.update(overrides)
    return terms


def agreement_data(**overrides) -> dict:
    data = {
        "protocol_name": "Acme",
        "contact_details": [{"name": "Security", "contact": "security@acme.example"}],
        "bounty_terms": bounty_terms(),
        "agreement_uri": "ipfs://QmAcmeAgreement",
        "chains": [{
            "network_id": EVM_NET,
            "asset_recovery_address": evm(0x11),
            "accounts": [{"address": evm(0x22), "child_contract_scope": "All"}],
        }],
    }
    data.update(overrides)
    return data


def adoption_payload(agreement, accounts=None, recovery=None) -> dict:
    return {
        "agreement": str(agreement),
        "asset_recovery_address": recovery or evm(0x33),
        "accounts": accounts if accounts is not None else [{"address": evm(0x44)}],
    }


def program_with_registry(networks=(EVM_NET, POLYGON_NET, SOL_NET), **kwargs):
    """A program whose registry is owned by keypair(1)."""
    program = SafeHarborProgram(**kwargs)
    owner = keypair(1).pubkey
    program.initialize(owner, list(networks))
    return program, owner


def program_with_agreement(**kwargs):
    """Registry plus one agreement at (keypair(1), nonce 1)."""
    program, owner = program_with_registry(**kwargs)
    event = program.create_or_update_agreement(owner, 1, agreement_data(), owner, "InitializeOrUpdate")
    return program, owner, event.agreement
