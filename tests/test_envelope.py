# tests/test_envelope.py
import json

import pytest

from exchange.digest import prepare_components
from exchange.envelope import assemble, assemble_from_components
from exchange.errors import MalformedSignature
from exchange.models import BulkCancel, CancelRequest, Signature
from exchange.signer import LocalSigner

TEST_KEY = "0x0123456789012345678901234567890123456789012345678901234567890123"
VAULT = "0x1719884eb866cb12b2287399b15f7db5e7d775ea"
SIG = Signature(b"\x11" * 32, b"\x22" * 32, 1)


def test_payload_shape_without_vault():
    env = assemble({"type": "cancel", "cancels": [{"a": 1, "o": 100}]}, 42, SIG)
    payload = env.to_payload()
    assert list(payload) == ["action", "nonce", "signature", "vaultAddress"]
    assert payload["vaultAddress"] is None
    assert payload["signature"] == {"r": "0x" + "11" * 32, "s": "0x" + "22" * 32, "v": 28}
    json.dumps(payload)


def test_payload_with_vault_and_expiry():
    env = assemble({"type": "cancel", "cancels": []}, 42, SIG,
                   vault_address=VAULT.upper().replace("0X", "0x"), expires_after=60_042)
    payload = env.to_payload()
    assert payload["vaultAddress"] == VAULT
    assert payload["expiresAfter"] == 60_042


def test_action_payload_is_copied():
    action = {"type": "cancel", "cancels": [{"a": 1, "o": 100}]}
    env = assemble(action, 1, SIG)
    action["cancels"].append({"a": 2, "o": 200})
    assert env.action["cancels"] == [{"a": 1, "o": 100}]


def test_external_signature_shapes_accepted():
    raw = SIG.r + SIG.s + bytes([28])
    assert assemble({"type": "cancel"}, 1, raw).signature == SIG
    assert assemble({"type": "cancel"}, 1, SIG.to_wire()).signature == SIG


@pytest.mark.parametrize("bad", [b"\x00" * 10, {"r": "0x1", "s": "0x2", "v": 5}, None])
def test_malformed_signature_rejected(bad):
    with pytest.raises(MalformedSignature):
        assemble({"type": "cancel"}, 1, bad)


def test_bulk_cancel_single_envelope():
    comps = prepare_components(BulkCancel([CancelRequest(1, 100), CancelRequest(2, 200)]), 7, True,
                               vault_address=VAULT, expires_after=107)
    env = assemble_from_components(comps, LocalSigner(TEST_KEY).sign(comps))
    payload = env.to_payload()
    assert payload["nonce"] == 7
    assert payload["action"] == {"type": "cancel", "cancels": [{"a": 1, "o": 100}, {"a": 2, "o": 200}]}
    assert payload["vaultAddress"] == VAULT
    assert payload["expiresAfter"] == 107
