from __future__ import annotations

import pytest

from ngschat.claims import Claims, encode
from ngschat.crypto import KeyPair
from ngschat.identity import CredentialsError, format_creds, load_user
from ngschat.keys import PREFIX_BYTE_ACCOUNT, PREFIX_BYTE_USER

from conftest import make_user_jwt


def _write(tmp_path, text: str):
    path = tmp_path / "bundle.creds"
    path.write_text(text)
    return path


def test_load_user(make_creds):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    identity = load_user(make_creds("Derek Collison", user_kp=user_kp))
    assert identity.subject == user_kp.public_key
    assert identity.name == "Derek Collison"
    assert identity.user_claims.claim_type == "user"
    assert identity.key_pair.can_sign
    assert identity.key_pair.public_key == user_kp.public_key


def test_missing_file_is_fatal(tmp_path):
    with pytest.raises(CredentialsError):
        load_user(tmp_path / "nope.creds")


def test_jwt_section_only_is_fatal(tmp_path, account_kp):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    jwt = make_user_jwt(user_kp, account_kp, "alice")
    text = f"-----BEGIN NATS USER JWT-----\n{jwt}\n------END NATS USER JWT------\n"
    with pytest.raises(CredentialsError, match="Expected user JWT and seed"):
        load_user(_write(tmp_path, text))


def test_seed_section_only_is_fatal(tmp_path):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    text = f"-----BEGIN USER NKEY SEED-----\n{user_kp.seed()}\n------END USER NKEY SEED------\n"
    with pytest.raises(CredentialsError, match="Expected user JWT and seed"):
        load_user(_write(tmp_path, text))


def test_empty_file_is_fatal(tmp_path):
    with pytest.raises(CredentialsError):
        load_user(_write(tmp_path, ""))


def test_undecodable_seed_is_fatal(tmp_path, account_kp):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    text = format_creds(make_user_jwt(user_kp, account_kp, "alice"), "SUNOTAREALSEED")
    with pytest.raises(CredentialsError, match="seed"):
        load_user(_write(tmp_path, text))


def test_seed_must_match_jwt_subject(tmp_path, account_kp):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    other_kp = KeyPair.generate(PREFIX_BYTE_USER)
    text = format_creds(make_user_jwt(user_kp, account_kp, "alice"), other_kp.seed())
    with pytest.raises(CredentialsError):
        load_user(_write(tmp_path, text))


def test_account_seed_is_not_a_user(tmp_path, account_kp):
    text = format_creds(make_user_jwt(account_kp, account_kp, "alice"), account_kp.seed())
    with pytest.raises(CredentialsError):
        load_user(_write(tmp_path, text))


def test_non_user_jwt_is_fatal(tmp_path, account_kp):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    jwt = make_user_jwt(user_kp, account_kp, "alice", claim_type="account")
    with pytest.raises(CredentialsError, match="Could not decode user"):
        load_user(_write(tmp_path, format_creds(jwt, user_kp.seed())))


def test_tampered_jwt_is_fatal(tmp_path, account_kp):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    header, payload, sig = make_user_jwt(user_kp, account_kp, "alice").split(".")
    forged_payload = encode(
        Claims(subject=user_kp.public_key, name="mallory", nats={"type": "user"}),
        KeyPair.generate(PREFIX_BYTE_ACCOUNT),
    ).split(".")[1]
    jwt = ".".join([header, forged_payload, sig])
    with pytest.raises(CredentialsError):
        load_user(_write(tmp_path, format_creds(jwt, user_kp.seed())))


def test_expired_user_jwt_is_fatal(tmp_path, account_kp):
    user_kp = KeyPair.generate(PREFIX_BYTE_USER)
    jwt = encode(
        Claims(subject=user_kp.public_key, name="alice", expires=1000, nats={"type": "user"}),
        account_kp,
    )
    with pytest.raises(CredentialsError):
        load_user(_write(tmp_path, format_creds(jwt, user_kp.seed())))
