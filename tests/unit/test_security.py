from datetime import timedelta
from utils.security import verify_password, get_password_hash, generate_token, get_token_expiry
from utils.timeutils import utcnow


def test_password_hashing():
    password = "supersecretpassword"
    hashed = get_password_hash(password)
    assert hashed != password

    empty_pass = ""
    hashed_empty = get_password_hash(empty_pass)
    assert empty_pass != hashed_empty


def test_password_verification():
    password = "supersecretpassword"
    hashed = get_password_hash(password)

    assert verify_password(password, hashed) is True
    assert verify_password("wrongpassword", hashed) is False

    long_pass = "a" * 100
    hashed_long = get_password_hash(long_pass)
    assert verify_password(long_pass, hashed_long) is True


def test_generated_tokens_are_unique_and_url_safe():
    tokens = {generate_token() for _ in range(20)}
    assert len(tokens) == 20
    for token in tokens:
        assert len(token) >= 40
        assert all(c.isalnum() or c in "-_" for c in token)


def test_token_expiry():
    expiry = get_token_expiry(hours=24)
    delta = expiry - utcnow()
    assert timedelta(hours=23, minutes=59) < delta <= timedelta(hours=24)
