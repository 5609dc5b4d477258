#!/usr/bin/env python3
"""
SafeHarbor Command Line Interface

Usage:
    safeharbor derive registry
    safeharbor derive agreement --creator <pubkey> --nonce <n>
    safeharbor derive adoption --adopter <pubkey> --network-id <caip2>
    safeharbor hash-network <caip2>
    safeharbor keygen --output <file>
    safeharbor validate --agreement <file> --networks eip155:1,solana:...
    safeharbor sign --key <file> --operation <name> --payload <file>
    safeharbor demo
"""

import argparse
import json
import sys

from .errors import SafeHarborError


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)


def _program_id(args):
    from safeharbor.addressing import DEFAULT_PROGRAM_ID
    from safeharbor.pubkey import Pubkey

    return Pubkey.from_string(args.program_id) if args.program_id else DEFAULT_PROGRAM_ID


def cmd_derive(args):
    """Compute a record address offline."""
    from safeharbor.addressing import (
        find_adoption_address,
        find_agreement_address,
        find_registry_address,
    )
    from safeharbor.pubkey import Pubkey

    program_id = _program_id(args)
    if args.record == "registry":
        address, bump = find_registry_address(program_id)
    elif args.record == "agreement":
        if not args.creator or args.nonce is None:
            print("derive agreement requires --creator and --nonce", file=sys.stderr)
            return 2
        address, bump = find_agreement_address(Pubkey.from_string(args.creator), args.nonce, program_id)
    else:
        if not args.adopter or not args.network_id:
            print("derive adoption requires --adopter and --network-id", file=sys.stderr)
            return 2
        address, bump = find_adoption_address(Pubkey.from_string(args.adopter), args.network_id, program_id)

    print(json.dumps({"address": str(address), "bump": bump}, indent=2))
    return 0


def cmd_hash_network(args):
    """Print SHA-256(network_id) as used in adoption seeds."""
    from safeharbor.hashing import network_id_hash
    from safeharbor.validation import validate_network_id

    validate_network_id(args.network_id)
    print(network_id_hash(args.network_id).hex())
    return 0


def cmd_keygen(args):
    """Generate an Ed25519 identity."""
    from safeharbor.signing import Keypair

    keypair = Keypair.generate()
    if args.output:
        save_json(keypair.to_dict(), args.output)
        print(f"Key pair saved to: {args.output}", file=sys.stderr)
    else:
        print(json.dumps(keypair.to_dict(), indent=2))
    print(f"Identity: {keypair.pubkey}", file=sys.stderr)
    return 0


class _NetworkList:
    def __init__(self, networks):
        self.networks = networks

    def is_recognized(self, network_id: str) -> bool:
        return network_id in self.networks


def cmd_validate(args):
    """Run every agreement rule against an agreement JSON file."""
    from safeharbor.agreement import AgreementData
    from safeharbor.validation import ValidationPolicy, validate_agreement_data

    policy = ValidationPolicy(
        require_bounty_cap=args.require_bounty_cap,
        enforce_aggregate_floor=not args.no_aggregate_floor,
        require_uri_scheme=not args.no_uri_scheme,
    )
    networks = [n for n in (args.networks or "").split(",") if n]
    # Without --networks, registry membership is not checked
    registry = _NetworkList(networks) if networks else None
    data = AgreementData.from_dict(load_json(args.agreement))
    validate_agreement_data(data, registry, policy)
    print("✓ agreement is valid")
    return 0


def cmd_sign(args):
    """Produce a signed request envelope."""
    from safeharbor.signing import Keypair, sign_request

    keypair = Keypair.from_dict(load_json(args.key))
    envelope = sign_request(args.operation, load_json(args.payload), keypair)
    if args.output:
        save_json(envelope, args.output)
        print(f"Envelope saved to: {args.output}", file=sys.stderr)
    else:
        print(json.dumps(envelope, indent=2))
    return 0


def cmd_demo(args):
    """Run a demonstration against an in-memory store."""
    from safeharbor import SafeHarborProgram
    from safeharbor.signing import Keypair

    print("=" * 60)
    print("SafeHarbor Demonstration")
    print("=" * 60)

    program = SafeHarborProgram()
    protocol = Keypair.generate().pubkey
    whitehat_team = Keypair.generate().pubkey

    event = program.initialize(protocol, ["eip155:1"])
    print(f"\nRegistry {event.registry} recognizes {event.networks}")

    data = {
        "protocol_name": "Acme",
        "contact_details": [{"name": "Security", "contact": "security@acme.example"}],
        "bounty_terms": {
            "bounty_percentage": 10,
            "bounty_cap_usd": 100000,
            "aggregate_bounty_cap_usd": 0,
            "retainable": False,
            "identity_requirement": "Named",
            "diligence_requirements": "KYC",
        },
        "agreement_uri": "ipfs://QmAcmeAgreement",
        "chains": [{
            "network_id": "eip155:1",
            "asset_recovery_address": "0x" + "11" * 20,
            "accounts": [{"address": "0x" + "22" * 20, "child_contract_scope": "All"}],
        }],
    }
    event = program.create_or_update_agreement(protocol, 1, data, protocol, "InitializeOrUpdate")
    print(f"Agreement {event.agreement} created ({event.data_hash[:23]}...)")

    print("\nRaising bounty to 150% ...")
    try:
        program.create_or_update_agreement(
            protocol, 1, {"bounty_terms": dict(data["bounty_terms"], bounty_percentage=150)},
            protocol, "BountyTerms")
    except SafeHarborError as e:
        print(f"  ✗ rejected: {e.kind.value}")
    stored = program.get_agreement(event.agreement)
    print(f"  stored bounty_percentage is still {stored.bounty_terms.bounty_percentage}")

    adopted = program.create_or_update_adoption(whitehat_team, "eip155:1", "InitializeOrUpdate", {
        "agreement": str(event.agreement),
        "asset_recovery_address": "0x" + "33" * 20,
        "accounts": [{"address": "0x" + "44" * 20}],
    })
    print(f"\nAdoption {adopted.adoption} -> {adopted.new_agreement}")

    print("\n" + "=" * 60)
    print("Demonstration complete.")
    print("=" * 60)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="SafeHarbor registry CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  safeharbor derive agreement --creator <pubkey> --nonce 1
  safeharbor hash-network solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp
  safeharbor keygen -o me.json
  safeharbor validate -a agreement.json -n eip155:1,eip155:137
  safeharbor sign -k me.json -O create_or_update_agreement -p body.json
        """
    )
    parser.add_argument("--program-id", help="Program id (base58); default is the built-in id")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # derive
    derive_parser = subparsers.add_parser("derive", help="Compute a record address")
    derive_parser.add_argument("record", choices=["registry", "agreement", "adoption"])
    derive_parser.add_argument("--creator", help="Agreement creator (base58)")
    derive_parser.add_argument("--nonce", type=int, help="Agreement nonce (u64)")
    derive_parser.add_argument("--adopter", help="Adopter (base58)")
    derive_parser.add_argument("--network-id", help="CAIP-2 network id")

    # hash-network
    hash_parser = subparsers.add_parser("hash-network", help="Hash a network id")
    hash_parser.add_argument("network_id", help="CAIP-2 network id")

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate an identity key pair")
    keygen_parser.add_argument("-o", "--output", help="Output file for the key pair")

    # validate
    validate_parser = subparsers.add_parser("validate", help="Validate agreement JSON")
    validate_parser.add_argument("-a", "--agreement", required=True, help="Agreement JSON file")
    validate_parser.add_argument("-n", "--networks", help="Comma-separated recognized network ids")
    validate_parser.add_argument("--require-bounty-cap", action="store_true")
    validate_parser.add_argument("--no-aggregate-floor", action="store_true")
    validate_parser.add_argument("--no-uri-scheme", action="store_true")

    # sign
    sign_parser = subparsers.add_parser("sign", help="Sign a request payload")
    sign_parser.add_argument("-k", "--key", required=True, help="Key pair JSON file")
    sign_parser.add_argument("-O", "--operation", required=True, help="Operation name")
    sign_parser.add_argument("-p", "--payload", required=True, help="Payload JSON file")
    sign_parser.add_argument("-o", "--output", help="Output file for the envelope")

    # demo
    subparsers.add_parser("demo", help="Run demonstration")

    args = parser.parse_args(argv)

    commands = {
        "derive": cmd_derive,
        "hash-network": cmd_hash_network,
        "keygen": cmd_keygen,
        "validate": cmd_validate,
        "sign": cmd_sign,
        "demo": cmd_demo,
    }
    if args.command not in commands:
        parser.print_help()
        return 1

    try:
        return commands[args.command](args)
    except SafeHarborError as e:
        print(f"✗ {e.kind.value}: {e.message}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
