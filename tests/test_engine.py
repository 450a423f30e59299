"""Tests for the validator invoker and the attribute/entity chain runners."""

import asyncio
import logging
import re
from datetime import date

import pytest

from ruleforge.entities import Collection, Model
from ruleforge.validation.config import LabelFormatter, ValidationOptions
from ruleforge.validation.engine import (
    ValidationHandle,
    invoke_validator,
    prospective_attributes,
    validate_attr,
    validate_entity,
)
from ruleforge.validation.registry import ValidatorRegistry
from ruleforge.validation.types import (
    OutcomeStatus,
    UnknownValidatorError,
    ValidatorDescriptor,
)
from ruleforge.validation.validators import register_builtin_validators


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def setup_registry():
    """Register built-in validators before each test."""
    ValidatorRegistry.clear()
    register_builtin_validators()
    yield
    ValidatorRegistry.clear()


@pytest.fixture
def calls():
    """Register 'spy' and 'slow' validators that record their invocations."""
    log: list[tuple[str, str]] = []

    def spy(handle, value, attr, parameter, entity, computed):
        log.append((attr, f"spy:{parameter}"))
        handle.resolve()

    async def slow(handle, value, attr, parameter, entity, computed):
        log.append((attr, f"start:{parameter}"))
        await asyncio.sleep(0.01)
        log.append((attr, f"end:{parameter}"))
        handle.resolve()

    ValidatorRegistry.register("spy", spy)
    ValidatorRegistry.register("slow", slow)
    return log


def make_entity(rules: dict, attributes: dict | None = None) -> Model:
    entity = Model(attributes or {})
    entity.validation = rules
    return entity


# =============================================================================
# ValidationHandle
# =============================================================================


class TestValidationHandle:
    @pytest.mark.asyncio
    async def test_first_settlement_wins(self):
        handle = ValidationHandle("age", None, ValidationOptions())
        handle.resolve()
        handle.reject("too late")
        outcome = await handle.wait()
        assert outcome.status is OutcomeStatus.PASS
        assert handle.settled

    @pytest.mark.asyncio
    async def test_fail_uses_default_message_with_label(self):
        handle = ValidationHandle("firstName", None, ValidationOptions())
        handle.fail("min", 3)
        outcome = await handle.wait()
        assert outcome.message == "First name must be greater than or equal to 3"

    @pytest.mark.asyncio
    async def test_label_respects_formatter(self):
        options = ValidationOptions(label_formatter=LabelFormatter.NONE)
        handle = ValidationHandle("firstName", None, options)
        assert handle.label() == "firstName"
        assert handle.label("lastName") == "lastName"


# =============================================================================
# Validator Invoker
# =============================================================================


class TestInvokeValidator:
    @pytest.mark.asyncio
    async def test_synchronous_pass(self):
        outcome = await invoke_validator(
            ValidatorDescriptor("min", 18), 20, "age", None, {}
        )
        assert outcome.passed
        assert outcome.status is OutcomeStatus.PASS

    @pytest.mark.asyncio
    async def test_custom_message_replaces_default(self):
        outcome = await invoke_validator(
            ValidatorDescriptor("min", 18, "Adults only"), 15, "age", None, {}
        )
        assert outcome.status is OutcomeStatus.FAIL
        assert outcome.message == "Adults only"

    @pytest.mark.asyncio
    async def test_coroutine_validator(self):
        async def remote_check(handle, value, attr, entity, computed):
            await asyncio.sleep(0.01)
            handle.reject("Username is taken")

        outcome = await invoke_validator(
            ValidatorDescriptor("fn", remote_check), "admin", "username", None, {}
        )
        assert outcome.message == "Username is taken"

    @pytest.mark.asyncio
    async def test_settled_from_loop_callback(self):
        def later(handle, value, attr, entity, computed):
            asyncio.get_running_loop().call_later(0.01, handle.resolve)

        outcome = await invoke_validator(
            ValidatorDescriptor("fn", later), "x", "field", None, {}
        )
        assert outcome.passed

    @pytest.mark.asyncio
    async def test_synchronous_fault_becomes_failure(self, caplog):
        def broken(handle, value, attr, entity, computed):
            raise RuntimeError("boom")

        with caplog.at_level(logging.WARNING, logger="ruleforge.validation.engine"):
            outcome = await invoke_validator(
                ValidatorDescriptor("fn", broken), "x", "nickname", None, {}
            )

        assert outcome.status is OutcomeStatus.FAIL
        assert outcome.message == "Nickname is invalid"
        assert "boom" not in outcome.message
        assert any("nickname" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_fault_uses_descriptor_message(self):
        def broken(handle, value, attr, entity, computed):
            raise KeyError("missing")

        outcome = await invoke_validator(
            ValidatorDescriptor("fn", broken, "Could not verify"), "x", "field", None, {}
        )
        assert outcome.message == "Could not verify"

    @pytest.mark.asyncio
    async def test_coroutine_fault_becomes_failure(self):
        async def broken(handle, value, attr, entity, computed):
            await asyncio.sleep(0)
            raise ConnectionError("service down")

        outcome = await invoke_validator(
            ValidatorDescriptor("fn", broken), "x", "field", None, {}
        )
        assert outcome.status is OutcomeStatus.FAIL
        assert outcome.message == "Field is invalid"

    @pytest.mark.asyncio
    async def test_fault_after_settling_keeps_outcome(self):
        def resolves_then_raises(handle, value, attr, entity, computed):
            handle.resolve()
            raise RuntimeError("after the fact")

        outcome = await invoke_validator(
            ValidatorDescriptor("fn", resolves_then_raises), "x", "field", None, {}
        )
        assert outcome.passed

    @pytest.mark.asyncio
    async def test_coroutine_fault_after_settling_is_logged(self, caplog):
        async def resolves_then_raises(handle, value, attr, entity, computed):
            await asyncio.sleep(0)
            handle.resolve()
            raise RuntimeError("after the fact")

        with caplog.at_level(logging.WARNING, logger="ruleforge.validation.engine"):
            outcome = await invoke_validator(
                ValidatorDescriptor("fn", resolves_then_raises), "x", "nickname", None, {}
            )
            await asyncio.sleep(0.01)

        assert outcome.passed
        faults = [r for r in caplog.records if r.exc_info]
        assert len(faults) == 1
        assert isinstance(faults[0].exc_info[1], RuntimeError)
        assert "nickname" in faults[0].getMessage()

    @pytest.mark.asyncio
    async def test_unknown_kind_raises(self):
        with pytest.raises(UnknownValidatorError) as exc_info:
            await invoke_validator(ValidatorDescriptor("bogus", 1), "x", "field", None, {})
        assert exc_info.value.kind == "bogus"
        assert "required" in exc_info.value.available


# =============================================================================
# Attribute Chain Runner
# =============================================================================


class TestValidateAttr:
    @pytest.mark.asyncio
    async def test_no_rules_is_valid(self):
        entity = make_entity({})
        assert await validate_attr(entity, "anything", None, {}) is None

    @pytest.mark.asyncio
    async def test_first_failure_wins(self, calls):
        entity = make_entity({"code": [{"minLength": 3}, {"maxLength": 1}, {"spy": 1}]})
        message = await validate_attr(entity, "code", "ab", {})
        assert message == "Code must be at least 3 characters"
        assert calls == []

    @pytest.mark.asyncio
    async def test_optional_empty_value_skips_other_rules(self, calls):
        entity = make_entity({"email": {"required": False, "pattern": "email", "spy": 1}})
        assert await validate_attr(entity, "email", "", {}) is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_required_empty_value_never_runs_other_rules(self, calls):
        entity = make_entity({"email": {"required": True, "spy": 1, "pattern": "email"}})
        message = await validate_attr(entity, "email", "   ", {})
        assert message == "Email is required"
        assert calls == []

    @pytest.mark.asyncio
    async def test_required_position_matters(self):
        entity = make_entity({"email": {"pattern": "email", "required": False}})
        message = await validate_attr(entity, "email", "", {})
        assert message == "Email must be a valid email"

    @pytest.mark.asyncio
    async def test_present_value_runs_every_rule(self, calls):
        entity = make_entity({"email": {"required": False, "spy": 1, "pattern": "email"}})
        assert await validate_attr(entity, "email", "a@b.com", {}) is None
        assert calls == [("email", "spy:1")]

    @pytest.mark.asyncio
    async def test_descriptors_run_strictly_in_order(self, calls):
        entity = make_entity({"code": [{"slow": 1}, {"spy": 2}, {"slow": 3}]})
        assert await validate_attr(entity, "code", "x", {}) is None
        assert calls == [
            ("code", "start:1"),
            ("code", "end:1"),
            ("code", "spy:2"),
            ("code", "start:3"),
            ("code", "end:3"),
        ]

    @pytest.mark.asyncio
    async def test_explicit_descriptors_override_entity_rules(self):
        entity = make_entity({"age": {"min": 18}})
        message = await validate_attr(
            entity, "age", 5, {}, descriptors=[ValidatorDescriptor("max", 3)]
        )
        assert message == "Age must be less than or equal to 3"


# =============================================================================
# Entity Chain Runner
# =============================================================================


class TestValidateEntity:
    @pytest.mark.asyncio
    async def test_every_attribute_is_evaluated(self, calls):
        entity = make_entity(
            {
                "a": {"required": True},
                "b": {"spy": "b"},
                "c": {"min": 10},
                "d": {"spy": "d"},
            },
            {"a": "", "b": 1, "c": 5, "d": 2},
        )
        result = await validate_entity(entity, prospective_attributes(entity))

        assert result.is_valid is False
        assert result.invalid_attrs == {
            "a": "A is required",
            "c": "C must be greater than or equal to 10",
        }
        assert calls == [("b", "spy:b"), ("d", "spy:d")]

    @pytest.mark.asyncio
    async def test_attributes_run_one_after_another(self, calls):
        entity = make_entity({"a": {"slow": 1}, "b": {"slow": 2}}, {"a": 1, "b": 2})
        result = await validate_entity(entity, prospective_attributes(entity))

        assert result.is_valid
        assert calls == [
            ("a", "start:1"),
            ("a", "end:1"),
            ("b", "start:2"),
            ("b", "end:2"),
        ]

    @pytest.mark.asyncio
    async def test_all_valid(self):
        entity = make_entity({"age": {"min": 18}}, {"age": 30})
        result = await validate_entity(entity, prospective_attributes(entity))
        assert result.is_valid
        assert result.invalid_attrs == {}

    @pytest.mark.asyncio
    async def test_unset_rule_attribute_is_validated(self):
        entity = make_entity({"name": {"required": True}}, {})
        result = await validate_entity(entity, prospective_attributes(entity))
        assert result.invalid_attrs == {"name": "Name is required"}

    @pytest.mark.asyncio
    async def test_nested_paths(self):
        entity = make_entity(
            {"address.zip": {"required": True, "pattern": "digits"}},
            {"address": {"street": "Main St", "zip": "12a"}},
        )
        options = ValidationOptions(label_formatter=LabelFormatter.NONE)
        result = await validate_entity(entity, prospective_attributes(entity), options)
        assert result.invalid_attrs == {"address.zip": "address.zip must be a valid digits"}

    @pytest.mark.asyncio
    async def test_rule_on_nested_mapping_validates_the_mapping(self):
        def has_street(handle, value, attr, entity, computed):
            if value and value.get("street"):
                handle.resolve()
            else:
                handle.reject("Street is missing")

        entity = make_entity({"address": has_street}, {"address": {"zip": "1234"}})
        result = await validate_entity(entity, prospective_attributes(entity))
        assert result.invalid_attrs == {"address": "Street is missing"}

    @pytest.mark.asyncio
    async def test_opaque_values_are_not_split(self):
        seen = {}

        def record(handle, value, attr, entity, computed):
            seen[attr] = value
            handle.resolve()

        birthday = date(1990, 1, 1)
        owner = Model({"name": "Ann"})
        team = Collection([owner])
        code = re.compile(r"\d+")
        entity = make_entity(
            {"birthday": record, "owner": record, "team": record, "code": record},
            {"birthday": birthday, "owner": owner, "team": team, "code": code},
        )
        await validate_entity(entity, prospective_attributes(entity))
        assert seen == {"birthday": birthday, "owner": owner, "team": team, "code": code}

    @pytest.mark.asyncio
    async def test_runs_are_independent(self):
        entity = make_entity({"age": {"min": 18}}, {"age": 10})
        first = await validate_entity(entity, prospective_attributes(entity))
        second = await validate_entity(entity, prospective_attributes(entity))
        assert first.invalid_attrs == second.invalid_attrs
        assert first.invalid_attrs is not second.invalid_attrs


class TestProspectiveAttributes:
    def test_overlays_changes_on_current_values(self):
        entity = make_entity({"name": {"required": True}}, {"age": 1, "city": "Oslo"})
        attrs = prospective_attributes(entity, {"age": 2})
        assert attrs == {"name": None, "age": 2, "city": "Oslo"}

    def test_rule_keys_come_first(self):
        entity = make_entity({"b": {"required": True}}, {"a": 1, "b": 2})
        assert list(prospective_attributes(entity)) == ["b", "a"]
