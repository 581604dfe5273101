"""
Unit tests for rule block accumulation and access decisions.
"""

import pytest

from django_protector import AccessDecision, Interval, Meta, Restrictable, insecurely
from django_protector.dsl import is_insecure

pytestmark = pytest.mark.unit


def above_four(value):
    return value > 4


@pytest.fixture
def meta():
    meta = Meta(fields=lambda: ["field1", "field2", "field3", "field4", "field5"])

    @meta.register
    def readable(box):
        box.can("read")

    @meta.register
    def scoped(box, user):
        if user:
            box.scope(lambda root: "relation")

    @meta.register
    def hidden(box, user):
        if user and user != "user":
            raise RuntimeError("wrong user")
        box.cannot("read", ["field5"], "field4")

    @meta.register
    def editable(box, user, entry):
        if user and user != "user":
            raise RuntimeError("wrong user")
        if user and entry != "entry":
            raise RuntimeError("wrong entry")
        box.can(
            "update",
            ["field1", "field2"],
            field3=1,
            field4=Interval(0, 5),
            field5=above_four,
        )
        box.can("destroy")

    return meta


class TestEvaluation:
    def test_evaluates(self, meta):
        assert isinstance(meta.evaluate("user", "entry"), AccessDecision)

    def test_sets_relation(self, meta):
        assert meta.evaluate("user", "entry").relation == "relation"

    def test_sets_access(self, meta):
        decision = meta.evaluate("user", "entry")

        assert decision.access == {
            "update": {
                "field1": None,
                "field2": None,
                "field3": 1,
                "field4": Interval(0, 5),
                "field5": above_four,
            },
            "read": {
                "field1": None,
                "field2": None,
                "field3": None,
            },
        }

    def test_marks_destroyable(self, meta):
        decision = meta.evaluate("user", "entry")
        assert decision.is_destroyable() is True
        assert decision.can("destroy") is True

    def test_marks_updatable_with_defaults(self, meta):
        decision = meta.evaluate("user", "entry")
        assert decision.is_updatable() is True
        assert decision.can("update") is True

    def test_marks_updatable_respecting_predicates(self, meta):
        decision = meta.evaluate("user", "entry")
        assert decision.is_updatable({"field5": 5}) is True
        assert decision.is_updatable({"field5": 3}) is False

    def test_marks_updatable_respecting_ranges_and_literals(self, meta):
        decision = meta.evaluate("user", "entry")
        assert decision.is_updatable({"field4": 5, "field3": 1}) is True
        assert decision.is_updatable({"field4": 6}) is False
        assert decision.is_updatable({"field3": 2}) is False

    def test_gets_first_unupdatable_field(self, meta):
        decision = meta.evaluate("user", "entry")
        assert (
            decision.first_unupdatable_field({"field1": 1, "field6": 2, "field7": 3})
            == "field6"
        )
        assert decision.first_unupdatable_field({"field1": 1}) is None

    def test_marks_creatable(self, meta):
        decision = meta.evaluate("user", "entry")
        assert decision.is_creatable() is False
        assert decision.can("create") is False

    def test_gets_first_uncreatable_field(self, meta):
        decision = meta.evaluate("user", "entry")
        assert decision.first_uncreatable_field({"field1": 1, "field6": 2}) == "field1"

    def test_field_level_queries(self, meta):
        decision = meta.evaluate("user", "entry")
        assert decision.can("read", "field1") is True
        assert decision.can("read", "field4") is False
        assert decision.cannot("read", "field5") is True
        assert decision.is_readable("field2") is True

    def test_decision_is_hashable(self, meta):
        first = meta.evaluate("user", "entry")
        second = meta.evaluate("user", "entry")

        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_evaluation_is_not_cached(self, meta):
        first = meta.evaluate("user", "entry")
        second = meta.evaluate("user", "entry")

        assert first is not second
        assert first == second

    def test_rule_block_errors_propagate(self, meta):
        with pytest.raises(RuntimeError, match="wrong user"):
            meta.evaluate("intruder", "entry")

    def test_blocks_run_insecurely(self):
        seen = []
        meta = Meta(fields=lambda: [])
        meta.register(lambda box: seen.append(is_insecure()))

        meta.evaluate()

        assert seen == [True]
        assert is_insecure() is False


class TestScoping:
    def test_unscoped_in_adequate_mode(self, meta, adequate):
        assert meta.evaluate(None, "entry").scoped is False

    def test_scoped_in_paranoid_mode(self, meta, paranoid):
        assert meta.evaluate(None, "entry").scoped is True

    def test_scoped_when_scope_called(self, meta, adequate):
        assert meta.evaluate("user", "entry").scoped is True

    def test_last_scope_wins(self):
        meta = Meta(fields=lambda: [])
        meta.register(lambda box: box.scope("inherited"))
        meta.register(lambda box, subject: subject == "override" and box.scope("own"))

        assert meta.evaluate("override").relation == "own"
        assert meta.evaluate("other").relation == "inherited"

    def test_scope_receives_model_without_adapter(self):
        model = object()
        meta = Meta(model=model, fields=lambda: [])
        meta.register(lambda box: box.scope(lambda root: root))

        assert meta.evaluate().relation is model

    def test_unscoped_decision_is_visible(self, adequate):
        meta = Meta(fields=lambda: [])
        assert meta.evaluate(None, "entry").is_visible() is True

    def test_scoped_decision_without_adapter_is_hidden(self):
        meta = Meta(fields=lambda: [])
        meta.register(lambda box: box.scope("anything"))
        assert meta.evaluate(None, "entry").is_visible() is False


class TestDeprecatedActions:
    def test_view_is_read(self):
        meta = Meta(fields=lambda: ["field1", "field2", "field3"])

        @meta.register
        def rules(box):
            box.can("view")
            box.cannot("view", "field2")

        with pytest.warns(DeprecationWarning):
            decision = meta.evaluate("user", "entry")

        assert decision.can("read") is True
        assert decision.can("read", "field1") is True
        assert decision.can("read", "field2") is False

    def test_view_verbs(self):
        meta = Meta(fields=lambda: ["field1", "field2"])

        @meta.register
        def rules(box):
            box.can_view()
            box.cannot_view("field1")

        with pytest.warns(DeprecationWarning):
            decision = meta.evaluate()

        assert dict(decision.access) == {"read": {"field2": None}}


class TestCustomActions:
    @pytest.fixture
    def decision(self):
        meta = Meta(fields=lambda: ["field1", "field2"])

        @meta.register
        def rules(box):
            box.can("drink", "field1")
            box.can("eat")
            box.cannot("eat", "field1")

        return meta.evaluate("user", "entry")

    def test_sets_field_level_restriction(self, decision):
        assert decision.can("drink", "field1") is True
        assert decision.can("drink") is True

    def test_sets_field_level_protection(self, decision):
        assert decision.can("eat", "field1") is False
        assert decision.can("eat") is True


class TestMerging:
    def test_cannot_after_can_wins_across_blocks(self):
        meta = Meta(fields=lambda: ["a", "b"])
        meta.register(lambda box: box.can("update", "a", "b"))
        meta.register(lambda box: box.cannot("update", "b"))

        assert dict(meta.evaluate().access["update"]) == {"a": None}

    def test_later_constraint_replaces_earlier(self):
        meta = Meta(fields=lambda: ["a"])
        meta.register(lambda box: box.can("update", a=1))
        meta.register(lambda box: box.can("update", {"a": Interval(0, 3)}))

        assert meta.evaluate().access["update"]["a"] == Interval(0, 3)

    def test_wildcard_after_cannot_permits_again(self):
        meta = Meta(fields=lambda: ["f1", "f2"])

        @meta.register
        def rules(box):
            box.can("read")
            box.cannot("read", "f2")
            box.can("read")

        assert dict(meta.evaluate().access["read"]) == {"f1": None, "f2": None}

    def test_cannot_after_wildcard_denies(self):
        meta = Meta(fields=lambda: ["f1", "f2"])
        meta.register(lambda box: box.can("read"))
        meta.register(lambda box: box.cannot("read", "f1"))

        assert dict(meta.evaluate().access["read"]) == {"f2": None}

    def test_wildcard_keeps_earlier_constraint(self):
        meta = Meta(fields=lambda: ["f1", "f2"])
        meta.register(lambda box: box.can("update", f1=5))
        meta.register(lambda box: box.can("update"))

        assert dict(meta.evaluate().access["update"]) == {"f1": 5, "f2": None}

    def test_plain_name_keeps_earlier_constraint(self):
        meta = Meta(fields=lambda: ["f3"])

        @meta.register
        def rules(box):
            box.can("update", f3=1)
            box.can("update", "f3")

        decision = meta.evaluate()
        assert decision.access["update"]["f3"] == 1
        assert decision.is_updatable({"f3": 99}) is False
        assert decision.is_updatable({"f3": 1}) is True

    def test_plain_name_after_cannot_is_unconstrained(self):
        meta = Meta(fields=lambda: ["f3"])

        @meta.register
        def rules(box):
            box.can("update", f3=1)
            box.cannot("update", "f3")
            box.can("update", "f3")

        assert dict(meta.evaluate().access["update"]) == {"f3": None}

    def test_explicit_none_mapping_replaces_constraint(self):
        meta = Meta(fields=lambda: ["f3"])
        meta.register(lambda box: box.can("update", f3=1))
        meta.register(lambda box: box.can("update", {"f3": None}))

        assert meta.evaluate().access["update"]["f3"] is None

    def test_cannot_without_fields_clears_action(self):
        meta = Meta(fields=lambda: ["f1"])
        meta.register(lambda box: box.can("create", "f1", "extra"))
        meta.register(lambda box: box.cannot("create"))

        decision = meta.evaluate()
        assert "create" not in decision.access
        assert decision.can("create") is False

    def test_cannot_destroy(self):
        meta = Meta(fields=lambda: [])
        meta.register(lambda box: box.can("destroy"))
        meta.register(lambda box: box.cannot("destroy"))

        assert meta.evaluate().is_destroyable() is False

    def test_duplicate_registration_runs_twice(self):
        calls = []
        meta = Meta(fields=lambda: [])

        def rules(box):
            calls.append(1)

        meta.register(rules)
        meta.register(rules)
        meta.evaluate()

        assert len(calls) == 2

    def test_wildcard_with_empty_field_set(self):
        meta = Meta(fields=lambda: [])
        meta.register(lambda box: box.can("read"))

        assert meta.evaluate().can("read") is False


class TestFields:
    def test_provider_called_once(self):
        calls = []

        def provider():
            calls.append(1)
            return ["a", "b"]

        meta = Meta(fields=provider)
        meta.register(lambda box: box.can("read"))
        meta.evaluate()
        meta.evaluate()

        assert meta.fields == ("a", "b")
        assert len(calls) == 1

    def test_lshift_registers(self):
        meta = Meta(fields=lambda: ["a"])
        meta << (lambda box: box.can("read"))

        assert meta.evaluate().can("read", "a")

    def test_block_without_parameters_runs(self):
        calls = []
        meta = Meta(fields=lambda: ["a"])
        meta.register(lambda: calls.append("legacy"))
        meta.register(lambda box: box.can("read"))

        decision = meta.evaluate("user", "entry")

        assert calls == ["legacy"]
        assert decision.can("read", "a") is True

    def test_non_callable_block_rejected(self):
        with pytest.raises(TypeError):
            Meta().register("not a block")


class TestPredicateRecursion:
    def test_avoids_predicate_recursion(self):
        meta = Meta(fields=lambda: ["field1"])

        def guarded(value):
            if value.has_protector_subject:
                raise RuntimeError("predicate recursion")
            return True

        meta.register(lambda box: box.can("create", field1=guarded))
        decision = meta.evaluate("context", "instance")

        assert decision.is_creatable({"field1": Restrictable().restrict(None)}) is True

    def test_predicate_receives_entry(self):
        meta = Meta(fields=lambda: ["owner"])
        meta.register(lambda box: box.can("update", owner=lambda value, entry: value == entry))
        decision = meta.evaluate("user", "alice")

        assert decision.is_updatable({"owner": "alice"}) is True
        assert decision.is_updatable({"owner": "bob"}) is False

    def test_predicate_errors_propagate(self):
        def broken(value):
            raise ValueError("broken predicate")

        meta = Meta(fields=lambda: ["field1"])
        meta.register(lambda box: box.can("update", field1=broken))

        with pytest.raises(ValueError, match="broken predicate"):
            meta.evaluate().is_updatable({"field1": 1})
        assert is_insecure() is False

    def test_insecure_outside_predicate_unaffected(self):
        with insecurely():
            assert is_insecure() is True
        assert is_insecure() is False
