from src.campus.utils.auth import create_access_token, decode_access_token


def test_token_round_trip_carries_user_id():
    token = create_access_token(42)
    assert decode_access_token(token) == 42


def test_expired_token_is_rejected():
    token = create_access_token(42, expires_minutes=-1)
    assert decode_access_token(token) is None


def test_garbage_token_is_rejected():
    assert decode_access_token("garbage") is None
    assert decode_access_token(create_access_token("not-a-number")) is None
