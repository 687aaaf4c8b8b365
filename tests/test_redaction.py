"""
Tests for the redaction layer.
"""

from dataclasses import dataclass

import pytest
from pydantic import BaseModel, SecretStr

from idle_engine.config import REDACTION_MARKER
from idle_engine.engine.redaction import is_sensitive_key, redact
from idle_engine.models import AuthSession


@dataclass
class Credentials:
    user: str
    password: str


class Connection(BaseModel):
    host: str
    client_secret: str


class TestRedaction:
    """Test cases for redact()."""

    @pytest.mark.parametrize("key", ["password", "Password", "PASSWORD", "api_key", "ApiKey", "api-key", "client_secret", "AccessToken", "connection_string"])
    def test_sensitive_keys(self, key):
        assert is_sensitive_key(key)

    @pytest.mark.parametrize("key", ["PasswordLastSet", "TokenCount", "User", "Department"])
    def test_keys_matched_exactly(self, key):
        assert not is_sensitive_key(key)

    def test_nested_mapping(self):
        data = {"User": "jdoe", "Auth": {"Password": "hunter2", "Realm": "corp"}, "Items": [{"token": "t"}]}
        assert redact(data) == {
            "User": "jdoe",
            "Auth": {"Password": REDACTION_MARKER, "Realm": "corp"},
            "Items": [{"token": REDACTION_MARKER}],
        }

    def test_input_not_modified(self):
        data = {"Password": "hunter2", "Nested": {"Secret": "x"}}
        redact(data)
        assert data == {"Password": "hunter2", "Nested": {"Secret": "x"}}

    def test_secret_types(self):
        data = {"Value": SecretStr("s3cr3t"), "Session": AuthSession("Directory", token="abc"), "List": [SecretStr("x")]}
        assert redact(data) == {"Value": REDACTION_MARKER, "Session": REDACTION_MARKER, "List": [REDACTION_MARKER]}

    def test_models_and_dataclasses(self):
        assert redact(Credentials("jdoe", "hunter2")) == {"user": "jdoe", "password": REDACTION_MARKER}
        assert redact(Connection(host="db", client_secret="x")) == {"host": "db", "client_secret": REDACTION_MARKER}

    def test_plain_objects_keep_public_attributes(self):
        class Holder:
            def __init__(self):
                self.name = "svc"
                self.token = "abc"
                self._private = "hidden"

        assert redact(Holder()) == {"name": "svc", "token": REDACTION_MARKER}

    def test_cycles_terminate(self):
        data = {"Name": "loop"}
        data["Self"] = data
        assert redact(data) == {"Name": "loop", "Self": REDACTION_MARKER}

    def test_shared_references_walked_once(self):
        shared = {"Value": 1}
        assert redact({"A": shared, "B": shared}) == {"A": {"Value": 1}, "B": REDACTION_MARKER}

    def test_shared_graph_is_linear(self):
        node = ["leaf"]
        for _ in range(40):
            node = [node, node]

        result = redact({"Data": node})
        assert result["Data"][1] == REDACTION_MARKER
        assert result["Data"][0][1] == REDACTION_MARKER

    def test_empty_containers_are_not_shared_references(self):
        assert redact({"A": (), "B": (), "C": {}, "D": {}}) == {"A": (), "B": (), "C": {}, "D": {}}

    def test_model_dump_copies_do_not_collide(self):
        connections = [Connection(host=f"h{i}", client_secret="s") for i in range(50)]
        result = redact({"Connections": connections})
        assert [c["host"] for c in result["Connections"]] == [f"h{i}" for i in range(50)]

    def test_redaction_is_idempotent(self):
        shared = {"Role": "admin"}
        data = {
            "Nested": {"Deep": {"password": "x", "Items": [1, {"Token": "t"}, ("a", {"Secret": "s"})]}},
            "Tags": {"one", "two"},
            "Connection": Connection(host="db", client_secret="s3cr3t"),
            "Credentials": Credentials(user="jdoe", password="pw"),
            "Session": AuthSession("Directory", token="abc"),
            "Wrapped": SecretStr("hidden"),
            "First": shared,
            "Second": shared,
        }
        data["Nested"]["Loop"] = data

        once = redact(data)
        assert redact(once) == once
        assert once["Connection"] == {"host": "db", "client_secret": REDACTION_MARKER}
        assert once["Session"] == REDACTION_MARKER
        assert data["Credentials"].password == "pw"

    def test_exceptions_become_strings(self):
        assert redact({"Error": ValueError("bad input")}) == {"Error": "ValueError: bad input"}

    def test_scalars_pass_through(self):
        assert redact("text") == "text"
        assert redact(42) == 42
        assert redact(None) is None

    def test_tuples_and_sets(self):
        assert redact(({"password": "x"},)) == ({"password": REDACTION_MARKER},)
        assert redact({"a"}) == ["a"]
