import time

from utils.auth import create_session_cookie, hash_password, read_session_cookie, verify_password


def test_password_hash_round_trip():
    stored = hash_password("correct horse")

    assert stored.startswith("pbkdf2_sha256$")
    assert verify_password("correct horse", stored) is True
    assert verify_password("wrong horse", stored) is False


def test_verify_password_rejects_malformed_hashes():
    assert verify_password("secret", None) is False
    assert verify_password("secret", "plaintext") is False
    assert verify_password("secret", "md5$1$salt$digest") is False
    assert verify_password("secret", "pbkdf2_sha256$many$salt$digest") is False


def test_session_cookie_carries_user_id():
    cookie = create_session_cookie(42, 30, secret_key="s3cret")

    assert read_session_cookie(cookie, secret_key="s3cret") == 42
    assert read_session_cookie(cookie, secret_key="other") is None


def test_session_cookie_rejects_tampering_and_expiry(monkeypatch):
    cookie = create_session_cookie(42, 30, secret_key="s3cret")
    _, expires, signature = cookie.split(":")

    assert read_session_cookie(f"43:{expires}:{signature}", secret_key="s3cret") is None
    assert read_session_cookie("garbage", secret_key="s3cret") is None
    assert read_session_cookie(None, secret_key="s3cret") is None

    now = time.time()
    monkeypatch.setattr(time, "time", lambda: now + 31 * 60)
    assert read_session_cookie(cookie, secret_key="s3cret") is None
