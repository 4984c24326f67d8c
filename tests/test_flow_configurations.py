"""
Unit tests for flow configuration resolution and validation.

Tests:
- Built-in archetypes resolve to their step lists
- Unknown archetypes fall back (or raise in strict mode)
- validate_flow_configuration() for every invariant
- create_step() / create_flow() helpers
"""
import pytest

from error_handling.exceptions import InvalidConfigError
from flow import create_flow, create_step, resolve_flow_configuration, validate_flow_configuration
from models.schemas import ConditionalRule, FlowArchetype, FlowConfiguration, Step, StepCondition, StepStatus


class TestResolveFlowConfiguration:
    """Test resolve_flow_configuration for built-in archetypes."""

    def test_simple_has_four_required_steps(self):
        """Simple flow resolves to exactly four required steps."""
        config = resolve_flow_configuration("simple")

        assert config.step_ids() == ["service-selection", "time-selection", "contact-info", "confirmation"]
        assert config.required_step_ids == set(config.step_ids())
        assert config.optional_step_ids == set()
        assert config.estimated_total_time_seconds == 300

    def test_detailed_has_optional_payment(self):
        config = resolve_flow_configuration(FlowArchetype.DETAILED)

        assert config.step_ids() == [
            "service-selection",
            "requirements",
            "time-selection",
            "contact-info",
            "payment",
            "confirmation",
        ]
        assert config.optional_step_ids == {"payment"}
        assert "payment" not in config.required_step_ids
        assert config.estimated_total_time_seconds == 570

    @pytest.mark.parametrize("archetype,count,total", [
        ("consultation", 5, 510),
        ("quote", 4, 510),
        ("custom", 3, 180),
    ])
    def test_step_counts_and_totals(self, archetype, count, total):
        config = resolve_flow_configuration(archetype)

        assert len(config.steps) == count
        assert config.estimated_total_time_seconds == total

    def test_final_step_is_not_clickable(self):
        for archetype in ("simple", "detailed", "consultation", "quote"):
            config = resolve_flow_configuration(archetype)
            assert config.steps[-1].clickable is False

    def test_service_is_recorded(self):
        config = resolve_flow_configuration("simple", service="web-development-services")

        assert config.service == "web-development-services"

    def test_unknown_archetype_falls_back_to_generic_flow(self):
        """Unknown archetypes degrade to the generic three-step flow."""
        config = resolve_flow_configuration("made-up")

        assert config.archetype == FlowArchetype.CUSTOM
        assert config.step_ids() == ["step-1", "step-2", "confirmation"]

    def test_unknown_archetype_raises_in_strict_mode(self):
        with pytest.raises(InvalidConfigError) as exc_info:
            resolve_flow_configuration("made-up", strict=True)

        assert "made-up" in str(exc_info.value)
        assert exc_info.value.errors

    def test_resolved_steps_are_independent_copies(self):
        """Mutating one resolved configuration never leaks into the next."""
        first = resolve_flow_configuration("simple")
        first.steps[0].label = "Changed"

        second = resolve_flow_configuration("simple")

        assert second.steps[0].label == "Select Service"


class TestValidateFlowConfiguration:
    """Test validate_flow_configuration invariants."""

    def test_valid_configuration(self):
        valid, errors = validate_flow_configuration(resolve_flow_configuration("detailed"))

        assert valid is True
        assert errors == []

    def test_empty_steps(self):
        valid, errors = validate_flow_configuration({
            "archetype": "custom",
            "steps": [],
            "estimated_total_time_seconds": 0,
        })

        assert valid is False
        assert "Flow must have at least one step" in errors

    def test_duplicate_ids(self):
        valid, errors = validate_flow_configuration({
            "archetype": "custom",
            "steps": [{"id": "a", "label": "A"}, {"id": "a", "label": "A again"}],
            "estimated_total_time_seconds": 120,
        })

        assert valid is False
        assert any("Duplicate step IDs found: a" in error for error in errors)

    def test_unknown_required_and_optional_ids(self):
        valid, errors = validate_flow_configuration({
            "archetype": "custom",
            "steps": [{"id": "a", "label": "A"}],
            "estimatedTotalTimeSeconds": 60,
            "requiredStepIds": ["a", "ghost"],
            "optionalStepIds": ["phantom"],
        })

        assert valid is False
        assert 'Required step "ghost" not found in steps' in errors
        assert 'Optional step "phantom" not found in steps' in errors

    def test_required_and_optional_overlap(self):
        valid, errors = validate_flow_configuration({
            "archetype": "custom",
            "steps": [{"id": "a", "label": "A"}],
            "estimated_total_time_seconds": 60,
            "required_step_ids": ["a"],
            "optional_step_ids": ["a"],
        })

        assert valid is False
        assert "Steps cannot be both required and optional: a" in errors

    def test_model_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            FlowConfiguration(
                archetype="custom",
                steps=[],
                estimated_total_time_seconds=0,
            )


class TestCreateHelpers:
    """Test create_step and create_flow."""

    def test_create_step_defaults(self):
        step = create_step("extras", "Extras")

        assert step.id == "extras"
        assert step.optional is False
        assert step.clickable is True
        assert step.estimated_time_seconds == 60

    def test_create_step_options(self):
        step = create_step("extras", "Extras", optional=True, estimated_time_seconds=15, clickable=False)

        assert step.optional is True
        assert step.estimated_time_seconds == 15
        assert step.clickable is False

    def test_create_flow_sums_estimates_and_partitions(self):
        config = create_flow("custom", [
            create_step("a", "A", estimated_time_seconds=30),
            create_step("b", "B", optional=True, estimated_time_seconds=45),
            create_step("c", "C"),
        ], service="audit")

        assert config.estimated_total_time_seconds == 135
        assert config.required_step_ids == {"a", "c"}
        assert config.optional_step_ids == {"b"}
        assert config.service == "audit"

    def test_create_flow_rejects_duplicates(self):
        with pytest.raises(InvalidConfigError) as exc_info:
            create_flow("custom", [create_step("a", "A"), create_step("a", "B")])

        assert any("Duplicate" in error for error in exc_info.value.errors)

    def test_flow_built_from_running_steps(self, make_controller):
        """Runtime steps are accepted as definitions and start pending."""
        config = create_flow("custom", [
            Step(id="a", label="A", status=StepStatus.COMPLETED),
            Step(id="b", label="B", status=StepStatus.ERROR, error_message="broken"),
        ])

        controller = make_controller(configuration=config)

        assert [step.status for step in controller.steps] == [StepStatus.CURRENT, StepStatus.PENDING]
        assert controller.steps[1].error_message is None

    def test_rule_with_running_step_definition(self, make_controller):
        rule = ConditionalRule(
            target_step_id="extra",
            condition=StepCondition(field="flag", operator="exists"),
            step_definition=Step(id="extra", label="Extra", status=StepStatus.COMPLETED),
            insert_after_id="a",
        )
        config = create_flow("custom", [create_step("a", "A"), create_step("b", "B")], conditional_rules=[rule])
        controller = make_controller(configuration=config)

        ids = controller.update_form_data({"flag": 1})

        assert ids == ["a", "extra", "b"]
        assert controller.steps[1].status == StepStatus.PENDING
