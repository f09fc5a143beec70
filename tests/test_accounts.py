"""Tests for the credential store."""

import pytest

import accounts
from errors import BadCredential, DuplicateUser, UserNotFound
from models import User


class TestRegister:
    def test_register_hashes_password(self, ctx):
        u = accounts.register("carol", "s3cret")

        assert u.id is not None
        assert u.password_hash != "s3cret"
        assert u.password_hash.count("$") >= 2  # method$salt$hash

    def test_duplicate_username_rejected(self, ctx):
        accounts.register("carol", "one")

        with pytest.raises(DuplicateUser):
            accounts.register("carol", "two")

        assert User.query.filter_by(username="carol").count() == 1


class TestVerify:
    def test_verify_returns_user(self, alice):
        assert accounts.verify("alice", "wonderland").id == alice.id

    def test_unknown_user(self, ctx):
        with pytest.raises(UserNotFound):
            accounts.verify("ghost", "whatever")

    def test_wrong_password(self, alice):
        with pytest.raises(BadCredential):
            accounts.verify("alice", "looking-glass")
