"""
SafeHarbor CLI Tests
"""

import base64
import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from safeharbor import (
    find_adoption_address,
    find_agreement_address,
    find_registry_address,
    network_id_hash,
    request_message,
    verify_signature,
)
from safeharbor.cli import main
from safeharbor.pubkey import Pubkey

from factories import EVM_NET, SOL_NET, agreement_data, bounty_terms, keypair


def run(*argv):
    """Run the CLI, returning (exit code, stdout)."""
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(list(argv))
    return code, out.getvalue()


class TestDerive(unittest.TestCase):

    def test_registry(self):
        code, out = run("derive", "registry")
        self.assertEqual(code, 0)
        address, bump = find_registry_address()
        self.assertEqual(json.loads(out), {"address": str(address), "bump": bump})

    def test_agreement(self):
        creator = keypair(1).pubkey
        code, out = run("derive", "agreement", "--creator", str(creator), "--nonce", "3")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["address"], str(find_agreement_address(creator, 3)[0]))

    def test_adoption(self):
        adopter = keypair(5).pubkey
        code, out = run("derive", "adoption", "--adopter", str(adopter), "--network-id", SOL_NET)
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["address"], str(find_adoption_address(adopter, SOL_NET)[0]))

    def test_agreement_needs_nonce(self):
        code, _ = run("derive", "agreement", "--creator", str(keypair(1).pubkey))
        self.assertEqual(code, 2)

    def test_bad_creator(self):
        code, _ = run("derive", "agreement", "--creator", "not-a-key", "--nonce", "1")
        self.assertEqual(code, 1)


class TestHashNetwork(unittest.TestCase):

    def test_prints_hex_digest(self):
        code, out = run("hash-network", SOL_NET)
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), network_id_hash(SOL_NET).hex())

    def test_rejects_malformed_id(self):
        code, _ = run("hash-network", "solana")
        self.assertEqual(code, 1)


class FileTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, name, data):
        path = os.path.join(self._tmp.name, name)
        with open(path, "w") as f:
            json.dump(data, f)
        return path


class TestValidate(FileTestCase):

    def test_valid_agreement(self):
        path = self.write("agreement.json", agreement_data())
        code, out = run("validate", "-a", path, "-n", f"{EVM_NET},{SOL_NET}")
        self.assertEqual(code, 0)
        self.assertIn("valid", out)

    def test_registry_check_skipped_without_networks(self):
        path = self.write("agreement.json", agreement_data())
        self.assertEqual(run("validate", "-a", path)[0], 0)

    def test_unrecognized_network(self):
        path = self.write("agreement.json", agreement_data())
        self.assertEqual(run("validate", "-a", path, "-n", SOL_NET)[0], 1)

    def test_invalid_bounty(self):
        path = self.write("agreement.json", agreement_data(bounty_terms=bounty_terms(bounty_percentage=101)))
        self.assertEqual(run("validate", "-a", path)[0], 1)

    def test_policy_flags(self):
        path = self.write("agreement.json", agreement_data(agreement_uri="ftp://acme.example/sh"))
        self.assertEqual(run("validate", "-a", path)[0], 1)
        self.assertEqual(run("validate", "-a", path, "--no-uri-scheme")[0], 0)


class TestKeygenAndSign(FileTestCase):

    def test_sign_envelope_verifies(self):
        key_path = os.path.join(self._tmp.name, "me.json")
        self.assertEqual(run("keygen", "-o", key_path)[0], 0)
        payload_path = self.write("payload.json", {"networks": [EVM_NET]})

        code, out = run("sign", "-k", key_path, "-O", "initialize", "-p", payload_path)
        self.assertEqual(code, 0)
        envelope = json.loads(out)

        with open(key_path) as f:
            self.assertEqual(envelope["signer"], json.load(f)["pubkey"])
        message = request_message("initialize", envelope["signer"], envelope["issued_at"], envelope["payload"])
        signer = Pubkey.from_string(envelope["signer"])
        signature = base64.b64decode(envelope["sig_b64"])
        self.assertTrue(verify_signature(message, signature, signer))
        other = request_message("set_recognized_networks", envelope["signer"], envelope["issued_at"],
                                envelope["payload"])
        self.assertFalse(verify_signature(other, signature, signer))


class TestDemo(unittest.TestCase):

    def test_demo_runs(self):
        code, out = run("demo")
        self.assertEqual(code, 0)
        self.assertIn("InvalidBountyPercentage", out)


if __name__ == "__main__":
    unittest.main()
