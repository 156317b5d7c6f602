import uuid
from datetime import timedelta

from attireburg.core.security import (
    create_access_token,
    create_unsubscribe_token,
    get_password_hash,
    verify_access_token,
    verify_password,
    verify_unsubscribe_token,
)


def test_password_hashing():
    hashed = get_password_hash("Wintermantel2026")

    assert hashed != "Wintermantel2026"
    assert verify_password("Wintermantel2026", hashed)
    assert not verify_password("wintermantel2026", hashed)
    assert not verify_password("Wintermantel2026", "not-a-hash")


def test_access_token():
    user_id = uuid.uuid4()

    assert verify_access_token(create_access_token(user_id)) == str(user_id)
    assert verify_access_token(create_access_token(user_id, expires_delta=timedelta(seconds=-1))) is None
    assert verify_access_token("garbage") is None


def test_unsubscribe_token_is_not_an_access_token():
    product_id = uuid.uuid4()
    token = create_unsubscribe_token("Kunde@Example.com", product_id)

    assert verify_access_token(token) is None
    assert verify_unsubscribe_token(token, "kunde@example.com", product_id)
    assert verify_unsubscribe_token(token, "kunde@example.com", str(product_id), None)
    assert not verify_unsubscribe_token(token, "kunde@example.com", product_id, uuid.uuid4())
    assert not verify_unsubscribe_token(None, "kunde@example.com", product_id)
    assert not verify_unsubscribe_token(create_access_token(uuid.uuid4()), "kunde@example.com", product_id)
