"""Tests for the HTTP API."""

from __future__ import annotations

import pytest
from sqlalchemy.orm.exc import StaleDataError

from conftest import (
    AUTHORITY,
    BIOMETRIC_HASH,
    CONTACT_A,
    CONTACT_B,
    CONTACT_C,
    CONTACTS,
    IDENTITY_HASH,
    NEW_PUBLIC_KEY,
    OWNER,
    PUBLIC_KEY,
    STRANGER,
)
from idreg.core.http import get_registry
from idreg.main import app

IDENTITIES = "/api/v1/identities"


def _body(**overrides) -> dict:
    body = {
        "identity_hash": IDENTITY_HASH.hex(),
        "public_key": PUBLIC_KEY.hex(),
        "name": "Alice",
        "biometric_hash": BIOMETRIC_HASH.hex(),
        "recovery_contacts": CONTACTS,
        "recovery_threshold": 2,
    }
    body.update(overrides)
    return body


@pytest.fixture()
def authority(client, headers_for):
    resp = client.put(
        "/api/v1/registry/authority",
        json={"principal": AUTHORITY},
        headers=headers_for(OWNER),
    )
    assert resp.status_code == 200
    return AUTHORITY


@pytest.fixture()
def identity_id(client, headers_for, authority) -> int:
    resp = client.post(f"{IDENTITIES}/", json=_body(), headers=headers_for(OWNER))
    assert resp.status_code == 201
    return resp.json()["id"]


# ---------------------------------------------------------------------------
# Registry configuration
# ---------------------------------------------------------------------------

class TestRegistryEndpoints:
    """GET /api/v1/registry and PUT /api/v1/registry/authority"""

    def test_registry_info_before_setup(self, client, headers_for):
        resp = client.get("/api/v1/registry", headers=headers_for(OWNER))
        assert resp.status_code == 200
        body = resp.json()
        assert body["authority"] is None
        assert body["identity_count"] == 0
        assert body["max_identities"] > 0

    def test_set_authority(self, client, headers_for, authority):
        resp = client.get("/api/v1/registry", headers=headers_for(OWNER))
        assert resp.json()["authority"] == AUTHORITY

    def test_authority_is_write_once(self, client, headers_for, authority):
        resp = client.put(
            "/api/v1/registry/authority",
            json={"principal": "ST9OTHER"},
            headers=headers_for(STRANGER),
        )
        assert resp.status_code == 409
        assert resp.json()["detail"] == {"code": 113, "error": "AUTHORITY_ALREADY_CONFIGURED"}

    def test_burn_address_rejected(self, client, headers_for):
        resp = client.put(
            "/api/v1/registry/authority",
            json={"principal": "SP000000000000000000002Q6VF78"},
            headers=headers_for(OWNER),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == 112


# ---------------------------------------------------------------------------
# Registration and lookups
# ---------------------------------------------------------------------------

class TestRegistration:
    """POST /api/v1/identities"""

    def test_register_and_fetch(self, client, headers_for, identity_id):
        assert identity_id == 0
        resp = client.get(f"{IDENTITIES}/0", headers=headers_for(STRANGER))
        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "Alice"
        assert body["owner"] == OWNER
        assert body["identity_hash"] == IDENTITY_HASH.hex()
        assert body["public_key"] == PUBLIC_KEY.hex()
        assert body["recovery_contacts"] == CONTACTS
        assert body["recovery_state"] == "active"
        assert body["approvals"] == []
        assert body["status"] is True

    def test_register_without_authority(self, client, headers_for):
        resp = client.post(f"{IDENTITIES}/", json=_body(), headers=headers_for(OWNER))
        assert resp.status_code == 503
        assert resp.json()["detail"] == {"code": 114, "error": "AUTHORITY_NOT_CONFIGURED"}

    def test_duplicate_hash(self, client, headers_for, identity_id):
        resp = client.post(
            f"{IDENTITIES}/",
            json=_body(public_key=(b"\x05" * 33).hex(), name="Bob"),
            headers=headers_for(STRANGER),
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == 101
        assert client.get(f"{IDENTITIES}/0", headers=headers_for(OWNER)).json()["name"] == "Alice"

    def test_invalid_public_key_length(self, client, headers_for, authority):
        resp = client.post(
            f"{IDENTITIES}/",
            json=_body(public_key=bytes(34).hex()),
            headers=headers_for(OWNER),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == {"code": 103, "error": "INVALID_PUBLIC_KEY"}

    def test_malformed_hex_is_rejected(self, client, headers_for, authority):
        resp = client.post(
            f"{IDENTITIES}/",
            json=_body(identity_hash="zz" * 32),
            headers=headers_for(OWNER),
        )
        assert resp.status_code == 422

    def test_lookup_by_hash(self, client, headers_for, identity_id):
        resp = client.get(
            f"{IDENTITIES}/by-hash/{IDENTITY_HASH.hex()}", headers=headers_for(OWNER)
        )
        assert resp.status_code == 200
        assert resp.json()["id"] == identity_id

        resp = client.get(f"{IDENTITIES}/by-hash/{'ff' * 32}", headers=headers_for(OWNER))
        assert resp.status_code == 404

    def test_is_registered(self, client, headers_for, identity_id):
        resp = client.get(
            f"{IDENTITIES}/registered/0x{IDENTITY_HASH.hex()}", headers=headers_for(OWNER)
        )
        assert resp.json() == {"identity_hash": IDENTITY_HASH.hex(), "registered": True}

        resp = client.get(f"{IDENTITIES}/registered/{'ff' * 32}", headers=headers_for(OWNER))
        assert resp.json()["registered"] is False

    def test_bad_hash_in_path(self, client, headers_for):
        resp = client.get(f"{IDENTITIES}/registered/not-hex", headers=headers_for(OWNER))
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == 102

    def test_unknown_identity(self, client, headers_for):
        resp = client.get(f"{IDENTITIES}/5", headers=headers_for(OWNER))
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == 107

    def test_id_beyond_storage_range(self, client, headers_for, identity_id):
        """Ids too large for the id column are simply unknown."""
        huge = 2**64
        for path in (f"{IDENTITIES}/{huge}", f"{IDENTITIES}/{huge}/updates"):
            resp = client.get(path, headers=headers_for(OWNER))
            assert resp.status_code == 404
            assert resp.json()["detail"]["code"] == 107

        resp = client.post(f"{IDENTITIES}/{huge}/recovery", headers=headers_for(OWNER))
        assert resp.status_code == 404
        resp = client.put(
            f"{IDENTITIES}/{huge}", json={"name": "X"}, headers=headers_for(OWNER)
        )
        assert resp.status_code == 404

    def test_negative_id_rejected(self, client, headers_for):
        resp = client.get(f"{IDENTITIES}/-1", headers=headers_for(OWNER))
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

class TestUpdate:
    """PUT /api/v1/identities/{id}"""

    def test_owner_update(self, client, headers_for, identity_id):
        resp = client.put(
            f"{IDENTITIES}/{identity_id}", json={"name": "Alicia"}, headers=headers_for(OWNER)
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Alicia"

        resp = client.get(f"{IDENTITIES}/{identity_id}/updates", headers=headers_for(OWNER))
        assert resp.status_code == 200
        body = resp.json()
        assert body["update_name"] == "Alicia"
        assert body["updater"] == OWNER

    def test_non_owner_update(self, client, headers_for, identity_id):
        resp = client.put(
            f"{IDENTITIES}/{identity_id}", json={"name": "X"}, headers=headers_for(CONTACT_A)
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["code"] == 100
        resp = client.get(f"{IDENTITIES}/{identity_id}", headers=headers_for(OWNER))
        assert resp.json()["name"] == "Alice"

    def test_updates_missing(self, client, headers_for, identity_id):
        resp = client.get(f"{IDENTITIES}/{identity_id}/updates", headers=headers_for(OWNER))
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------

class TestRecovery:
    """POST /api/v1/identities/{id}/recovery[...]"""

    def _approve(self, client, headers_for, identity_id, caller):
        return client.post(
            f"{IDENTITIES}/{identity_id}/recovery/approvals", headers=headers_for(caller)
        )

    def _complete(self, client, headers_for, identity_id, caller):
        return client.post(
            f"{IDENTITIES}/{identity_id}/recovery/complete",
            json={"new_public_key": NEW_PUBLIC_KEY.hex()},
            headers=headers_for(caller),
        )

    def test_full_recovery(self, client, headers_for, identity_id):
        resp = client.post(f"{IDENTITIES}/{identity_id}/recovery", headers=headers_for(OWNER))
        assert resp.status_code == 200
        assert resp.json()["recovery_state"] == "recovery_pending"

        assert self._approve(client, headers_for, identity_id, CONTACT_B).json()["approvals"] == [CONTACT_B]
        resp = self._approve(client, headers_for, identity_id, CONTACT_C)
        assert resp.json()["approvals"] == [CONTACT_B, CONTACT_C]

        resp = self._complete(client, headers_for, identity_id, STRANGER)
        assert resp.status_code == 200
        body = resp.json()
        assert body["owner"] == STRANGER
        assert body["public_key"] == NEW_PUBLIC_KEY.hex()
        assert body["recovery_state"] == "active"
        assert body["approvals"] == []

        events = client.get(
            f"{IDENTITIES}/{identity_id}/events", headers=headers_for(OWNER)
        ).json()
        assert [e["action"] for e in events] == [
            "identity-registered",
            "recovery-initiated",
            "recovery-approved",
            "recovery-approved",
            "recovery-completed",
        ]

    def test_complete_below_threshold(self, client, headers_for, identity_id):
        client.post(f"{IDENTITIES}/{identity_id}/recovery", headers=headers_for(OWNER))
        self._approve(client, headers_for, identity_id, CONTACT_A)
        resp = self._complete(client, headers_for, identity_id, OWNER)
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == 111
        state = client.get(f"{IDENTITIES}/{identity_id}", headers=headers_for(OWNER)).json()
        assert state["recovery_state"] == "recovery_pending"

    def test_stranger_cannot_approve(self, client, headers_for, identity_id):
        client.post(f"{IDENTITIES}/{identity_id}/recovery", headers=headers_for(OWNER))
        resp = self._approve(client, headers_for, identity_id, STRANGER)
        assert resp.status_code == 403

    def test_approve_before_initiation(self, client, headers_for, identity_id):
        resp = self._approve(client, headers_for, identity_id, CONTACT_A)
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == 110

    def test_initiate_twice(self, client, headers_for, identity_id):
        client.post(f"{IDENTITIES}/{identity_id}/recovery", headers=headers_for(OWNER))
        resp = client.post(f"{IDENTITIES}/{identity_id}/recovery", headers=headers_for(OWNER))
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == 109

    def test_concurrent_write_conflict(self, client, headers_for):
        class _ConflictingRegistry:
            def initiate_recovery(self, caller, identity_id):
                raise StaleDataError("version mismatch")

        app.dependency_overrides[get_registry] = lambda: _ConflictingRegistry()
        resp = client.post(f"{IDENTITIES}/0/recovery", headers=headers_for(OWNER))
        assert resp.status_code == 409
        assert resp.json() == {"detail": "Concurrent modification, retry"}
