import pytest
from sellerdesk.otp.policy import OtpPolicy, policy_from_settings
from sellerdesk.otp.utils import codes_match, generate_code, hash_code, make_hasher


def test_settings_policy_defaults():
    policy = policy_from_settings(clock=lambda: 5)
    assert policy.ttl_ms == 600_000
    assert policy.max_attempts == 5
    assert policy.code_length == 6
    assert policy.clock() == 5


@pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_attempts": 0}, {"code_length": 3}, {"code_length": 13}])
def test_policy_rejects_nonsense(kwargs):
    with pytest.raises(ValueError):
        OtpPolicy(**kwargs)


def test_salted_hash_depends_on_salt():
    hasher = make_hasher("sha256")
    assert hash_code(hasher, "salt-a", "123456") != hash_code(hasher, "salt-b", "123456")
    assert codes_match(hasher, "salt-a", "123456", hash_code(hasher, "salt-a", "123456"))
    assert not codes_match(hasher, "salt-a", "123457", hash_code(hasher, "salt-a", "123456"))


def test_generate_code_length():
    assert len(generate_code(8)) == 8
