"""Tests for the ResourceCollection entity."""

import pytest

from rowguard.domain.entities import Operation, OperationScope, ResourceCollection, Rule
from rowguard.domain.exceptions import AmbiguousRulePairError, InvalidRuleError


def all_rule(name="Allow all"):
    return Rule(name, OperationScope.ALL, using="true", check="true")


def select_rule(name="Allow read"):
    return Rule(name, OperationScope.SELECT, using="true")


class TestResourceCollection:
    def test_defaults(self):
        collection = ResourceCollection("items")
        assert collection.access_control_enabled is False
        assert collection.access_sensitive is True
        assert collection.rules == {}

    def test_name_required(self):
        with pytest.raises(ValueError):
            ResourceCollection("")

    def test_rules_for_includes_all_scope(self):
        collection = ResourceCollection("items")
        collection.add_rule(all_rule())
        assert [r.name for r in collection.rules_for(Operation.DELETE)] == ["Allow all"]


class TestAmbiguity:
    """ALL-scoped rules next to operation-specific rules."""

    def test_specific_after_all_rejected(self):
        collection = ResourceCollection("items")
        collection.add_rule(all_rule())

        with pytest.raises(AmbiguousRulePairError) as exc_info:
            collection.add_rule(select_rule())

        assert exc_info.value.all_rules == ["Allow all"]
        assert exc_info.value.specific_rules == ["Allow read"]
        assert exc_info.value.operation == "SELECT"

    def test_all_after_specific_rejected(self):
        collection = ResourceCollection("items")
        collection.add_rule(select_rule())
        with pytest.raises(AmbiguousRulePairError):
            collection.add_rule(all_rule())

    def test_allow_ambiguous_for_import(self):
        collection = ResourceCollection("items")
        collection.add_rule(select_rule())
        collection.add_rule(all_rule(), allow_ambiguous=True)

        assert collection.conflicts_for(Operation.SELECT) == (["Allow all"], ["Allow read"])
        assert collection.conflicts_for(Operation.INSERT) is None

    def test_two_specific_rules_are_not_ambiguous(self):
        collection = ResourceCollection("items")
        collection.add_rule(select_rule("a"))
        collection.add_rule(select_rule("b"))
        assert collection.conflicts_for(Operation.SELECT) is None
        assert collection.has_specific_rules


class TestColumnValidation:
    def test_unknown_column_rejected(self):
        collection = ResourceCollection("items", columns=("id", "owner_id"))
        with pytest.raises(InvalidRuleError, match="Field 'owner' does not exist"):
            collection.add_rule(Rule("r", OperationScope.SELECT, using="owner == auth.id"))

    def test_known_column_accepted(self):
        collection = ResourceCollection("items", columns=("id", "owner_id"))
        collection.add_rule(Rule("r", OperationScope.SELECT, using="owner_id == auth.id"))
        assert "r" in collection.rules

    def test_remove_rule(self):
        collection = ResourceCollection("items")
        collection.add_rule(select_rule())
        assert collection.remove_rule("Allow read").name == "Allow read"
        assert collection.remove_rule("Allow read") is None
