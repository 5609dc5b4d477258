from datetime import datetime, timedelta, timezone

from safeharbor import network_id_hash, sign_request

from factories import EVM_NET, SOL_ADDR, SOL_ADDR_2, SOL_NET, adoption_payload, agreement_data, bounty_terms, evm, keypair

OWNER = keypair(1)
ADOPTER = keypair(5)
INTRUDER = keypair(9)


def post(client, path, operation, payload, signer=OWNER, **kwargs):
    return client.post(path, json=sign_request(operation, payload, signer, **kwargs))


def initialize(client, networks=(EVM_NET, SOL_NET)):
    r = post(client, "/registry/initialize", "initialize", {"networks": list(networks)})
    assert r.status_code == 200, r.text
    return r.json()


def create_agreement(client, nonce=1, data=None):
    body = {
        "nonce": nonce,
        "update_type": "InitializeOrUpdate",
        "data": data or agreement_data(),
        "owner": str(OWNER.pubkey),
    }
    r = post(client, "/agreements", "create_or_update_agreement", body)
    assert r.status_code == 200, r.text
    return r.json()["agreement"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["registry_initialized"] is False
    assert body["event_chain_valid"] is True
    assert "x-request-id" in r.headers
    assert body["config"]["program_id_valid"] is True


def test_registry_lifecycle(client):
    r = client.get("/registry")
    assert r.status_code == 404
    assert r.json()["detail"] == "RegistryNotInitialized"

    event = initialize(client)
    assert event["event_type"] == "RegistryInitialized"
    assert event["owner"] == str(OWNER.pubkey)

    r = client.get("/registry")
    assert r.status_code == 200
    assert r.json()["recognized_networks"] == [EVM_NET, SOL_NET]
    assert r.json()["address"] == event["registry"]

    r = post(client, "/registry/initialize", "initialize", {"networks": [EVM_NET]})
    assert r.status_code == 409
    assert r.json()["detail"] == "RegistryAlreadyInitialized"


def test_recognize_and_unrecognize(client):
    initialize(client, [EVM_NET])
    r = post(client, "/registry/networks/recognize", "set_recognized_networks", {"networks": ["eip155:137"]})
    assert r.status_code == 200
    assert r.json()["snapshot"] == [EVM_NET, "eip155:137"]

    r = post(client, "/registry/networks/unrecognize", "set_unrecognized_networks", {"networks": [EVM_NET]})
    assert r.status_code == 200
    assert client.get("/registry").json()["recognized_networks"] == ["eip155:137"]


def test_non_owner_cannot_change_registry(client):
    initialize(client)
    r = post(client, "/registry/networks/recognize", "set_recognized_networks",
             {"networks": ["eip155:10"]}, signer=INTRUDER)
    assert r.status_code == 403
    assert r.json()["detail"] == "NotRegistryOwner"


def test_forged_signer_rejected(client):
    envelope = sign_request("initialize", {"networks": [EVM_NET]}, INTRUDER)
    envelope["signer"] = str(OWNER.pubkey)
    r = client.post("/registry/initialize", json=envelope)
    assert r.status_code == 403
    assert r.json()["detail"] == "InvalidSignature"
    assert client.get("/registry").status_code == 404


def test_tampered_payload_rejected(client):
    envelope = sign_request("initialize", {"networks": [EVM_NET]}, OWNER)
    envelope["payload"]["networks"].append(SOL_NET)
    r = client.post("/registry/initialize", json=envelope)
    assert r.status_code == 403


def test_signature_bound_to_operation(client):
    initialize(client)
    envelope = sign_request("set_recognized_networks", {"networks": [EVM_NET]}, OWNER)
    r = client.post("/registry/networks/unrecognize", json=envelope)
    assert r.status_code == 403
    assert r.json()["detail"] == "InvalidSignature"


def test_stale_request_rejected(client):
    issued_at = datetime.now(timezone.utc) - timedelta(hours=1)
    r = post(client, "/registry/initialize", "initialize", {"networks": [EVM_NET]}, issued_at=issued_at)
    assert r.status_code == 403
    assert r.json()["detail"] == "InvalidSignature"


def test_malformed_signature_rejected(client):
    envelope = sign_request("initialize", {"networks": [EVM_NET]}, OWNER)
    envelope["sig_b64"] = "!!not base64!!"
    assert client.post("/registry/initialize", json=envelope).status_code == 403


def test_replayed_request_rejected(client):
    envelope = sign_request("initialize", {"networks": [EVM_NET]}, OWNER)
    assert client.post("/registry/initialize", json=envelope).status_code == 200
    r = client.post("/registry/initialize", json=envelope)
    assert r.status_code == 403
    assert r.json()["detail"] == "InvalidSignature"


def test_replay_cannot_revert_later_update(client):
    initialize(client)
    address = create_agreement(client)

    def rename(name):
        return sign_request("create_or_update_agreement", {
            "nonce": 1,
            "update_type": "ProtocolName",
            "data": {"protocol_name": name},
        }, OWNER)

    old = rename("Old")
    assert client.post("/agreements", json=old).status_code == 200
    assert client.post("/agreements", json=rename("New")).status_code == 200

    assert client.post("/agreements", json=old).status_code == 403
    assert client.get(f"/agreements/{address}").json()["protocol_name"] == "New"


def test_payload_shape_error_is_422(client):
    initialize(client)
    r = post(client, "/agreements", "create_or_update_agreement", {"update_type": "ProtocolName"})
    assert r.status_code == 422


def test_agreement_round_trip(client):
    initialize(client)
    address = create_agreement(client)

    r = client.get("/addresses/agreement", params={"creator": str(OWNER.pubkey), "nonce": 1})
    assert r.json()["address"] == address

    r = client.get(f"/agreements/{address}")
    assert r.status_code == 200
    body = r.json()
    assert body["protocol_name"] == "Acme"
    assert body["owner"] == str(OWNER.pubkey)
    assert body["bounty_terms"]["bounty_percentage"] == 10


def test_rejected_bounty_leaves_agreement_unchanged(client):
    initialize(client)
    address = create_agreement(client)
    before = client.get(f"/agreements/{address}").json()

    r = post(client, "/agreements", "create_or_update_agreement", {
        "nonce": 1,
        "update_type": "BountyTerms",
        "data": {"bounty_terms": bounty_terms(bounty_percentage=150)},
    })
    assert r.status_code == 400
    assert r.json()["detail"] == "InvalidBountyPercentage"
    assert client.get(f"/agreements/{address}").json() == before


def test_agreement_not_found(client):
    r = client.get(f"/agreements/{keypair(40).pubkey}")
    assert r.status_code == 404
    assert r.json()["detail"] == "AgreementNotInitialized"


def test_bad_address_is_400(client):
    r = client.get("/agreements/not-a-key")
    assert r.status_code == 400
    assert r.json()["detail"] == "InvalidAccountParams"


def test_adoption_flow(client):
    initialize(client)
    agreement = create_agreement(client)

    body = {
        "network_id": SOL_NET,
        "update_type": "InitializeOrUpdate",
        "payload": adoption_payload(agreement, accounts=[{"address": SOL_ADDR}], recovery=SOL_ADDR_2),
        "network_id_hash": network_id_hash(SOL_NET).hex(),
    }
    r = post(client, "/adoptions", "create_or_update_adoption", body, signer=ADOPTER)
    assert r.status_code == 200, r.text
    event = r.json()
    assert event["event_type"] == "SafeHarborAdopted"
    assert event["new_agreement"] == agreement
    assert event["old_agreement"] is None

    r = client.get("/addresses/adoption", params={"adopter": str(ADOPTER.pubkey), "network_id": SOL_NET})
    assert r.json()["address"] == event["adoption"]
    assert r.json()["network_id_hash"] == network_id_hash(SOL_NET).hex()

    r = client.get(f"/adoptions/{event['adoption']}")
    assert r.status_code == 200
    assert r.json()["accounts"] == [{"address": SOL_ADDR, "child_contract_scope": "None"}]

    r = post(client, "/adoptions", "create_or_update_adoption", {
        "network_id": SOL_NET,
        "update_type": "RemoveAccounts",
        "payload": {"addresses": [SOL_ADDR]},
    }, signer=ADOPTER)
    assert r.status_code == 200
    assert r.json()["event_type"] == "AdoptionUpdated"
    assert client.get(f"/adoptions/{event['adoption']}").json()["accounts"] == []


def test_adoption_hash_mismatch(client):
    initialize(client)
    agreement = create_agreement(client)
    r = post(client, "/adoptions", "create_or_update_adoption", {
        "network_id": EVM_NET,
        "update_type": "InitializeOrUpdate",
        "payload": adoption_payload(agreement),
        "network_id_hash": network_id_hash(SOL_NET).hex(),
    }, signer=ADOPTER)
    assert r.status_code == 400
    assert r.json()["detail"] == "AddressHashMismatch"


def test_adoption_requires_agreement(client):
    initialize(client)
    r = post(client, "/adoptions", "create_or_update_adoption", {
        "network_id": EVM_NET,
        "update_type": "InitializeOrUpdate",
        "payload": adoption_payload(keypair(40).pubkey, accounts=[{"address": evm(0x44)}]),
    }, signer=ADOPTER)
    assert r.status_code == 404
    assert r.json()["detail"] == "NoAgreementForAdopter"


def test_events_and_chain(client):
    initialize(client)
    create_agreement(client)

    events = client.get("/events").json()
    assert [e["event_type"] for e in events] == ["AgreementUpdated", "RegistryInitialized"]
    assert len(client.get("/events", params={"event_type": "RegistryInitialized"}).json()) == 1
    assert client.get("/events", params={"limit": 0}).status_code == 422

    health = client.get("/health").json()
    assert health["registry_initialized"] is True
    assert health["db"]["event_log_count"] == 2
    assert health["event_chain_valid"] is True
