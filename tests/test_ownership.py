"""Tests for owner authorization."""

import pytest

from models import LedgerState
from services.exceptions import AuthorizationError
from services.ownership import StoredOwnerAuthorizer, require_owner


class TestStoredOwnerAuthorizer:
    def test_owner_matches(self):
        state = LedgerState(owner="owner", fee_collector="owner", custody_account="vault")
        authorizer = StoredOwnerAuthorizer()

        assert authorizer.is_owner(state, "owner")
        assert not authorizer.is_owner(state, "someone-else")
        assert not authorizer.is_owner(state, "")

    def test_require_owner_raises(self):
        state = LedgerState(owner="owner", fee_collector="owner", custody_account="vault")

        with pytest.raises(AuthorizationError, match="not allowed to withdraw") as exc_info:
            require_owner(StoredOwnerAuthorizer(), state, "mallory", "withdraw")

        assert exc_info.value.caller == "mallory"
        assert exc_info.value.action == "withdraw"

    def test_require_owner_passes(self):
        state = LedgerState(owner="owner", fee_collector="owner", custody_account="vault")
        require_owner(StoredOwnerAuthorizer(), state, "owner", "set fee")
