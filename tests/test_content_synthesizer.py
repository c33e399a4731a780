import pytest

from xray_agent.core.exceptions import ValidationError
from xray_agent.services.content_synthesizer import (
    BOOTSTRAP_STEPS,
    FALLBACK_STEPS,
    STEP_RULES,
    VERIFICATION_STEP,
    ContentSynthesizer,
    StepRule,
    render_description,
    select_rule,
)

CLOTHING_TEXT = (
    "As a traveller I want the app to recommend clothing based on the weather in my region\n"
    "so that I dress appropriately."
)
CREATION_TEXT = "As an admin I can create a new project from the dashboard"
GENERIC_TEXT = "Login feature\nUsers sign in with their email and password."


@pytest.fixture
def synthesizer():
    return ContentSynthesizer()


@pytest.mark.parametrize(
    "text, rule_name, topical_count",
    [
        (CLOTHING_TEXT, "clothing_recommendation", 7),
        (CREATION_TEXT, "creation", 4),
        (GENERIC_TEXT, None, len(FALLBACK_STEPS)),
    ],
)
def test_steps_are_wrapped_and_numbered(synthesizer, text, rule_name, topical_count):
    rule = select_rule(text)
    assert (rule.name if rule else None) == rule_name

    steps = synthesizer.build_steps(text)

    assert len(steps) == len(BOOTSTRAP_STEPS) + topical_count + 1
    assert [step.step_number for step in steps] == list(range(1, len(steps) + 1))
    assert steps[0].action == BOOTSTRAP_STEPS[0][0]
    assert steps[1].action == BOOTSTRAP_STEPS[1][0]
    assert steps[-1].action == VERIFICATION_STEP[0]


def test_clothing_rule_takes_precedence_over_creation():
    text = "Add a feature to suggest outfits for the current season"

    assert select_rule(text).name == "clothing_recommendation"


def test_creation_rule_matches_whole_words_only():
    assert select_rule("Renew the subscription address") is None
    assert select_rule("Users can ADD items").name == "creation"


@pytest.mark.parametrize(
    "text",
    ["User creates an order", "Adding items to the cart", "Order creation from the basket", "Admin added a user"],
)
def test_creation_rule_matches_inflected_forms(text):
    assert select_rule(text).name == "creation"


def test_custom_rule_table():
    rule = StepRule(name="search", predicate=lambda text: "search" in text, steps=(("Search", "query", "Results shown"),))
    synthesizer = ContentSynthesizer(rules=[rule])

    steps = synthesizer.build_steps("Search the catalog")

    assert [step.action for step in steps][2] == "Search"
    assert len(steps) == 4


def test_summary_and_objective_use_first_line(synthesizer):
    content = synthesizer.synthesize(GENERIC_TEXT)

    assert content.summary == "Test: Login feature"
    assert content.test_objective == 'Verify that "Login feature" works as expected and meets all acceptance criteria'
    assert content.description == GENERIC_TEXT


def test_leading_blank_lines_are_skipped_for_title(synthesizer):
    content = synthesizer.synthesize("\n\n   \nCheckout flow\nmore")

    assert content.summary == "Test: Checkout flow"


def test_additional_requirements_are_appended(synthesizer):
    content = synthesizer.synthesize(GENERIC_TEXT, additional_requirements="Must lock after 3 attempts")

    assert content.description.endswith("\n\nAdditional Requirements:\nMust lock after 3 attempts")


def test_fixed_sections(synthesizer):
    content = synthesizer.synthesize(GENERIC_TEXT)

    assert [p.id for p in content.preconditions] == ["PRE-001", "PRE-002", "PRE-003"]
    assert len(content.expected_results) == 4
    assert [d.category for d in content.test_data] == ["Valid Data", "Invalid Data", "Boundary Data"]
    assert [ac.id for ac in content.acceptance_criteria] == ["AC-001", "AC-002", "AC-003", "AC-004", "AC-005"]


def test_acceptance_criteria_extras_follow_additional_requirements(synthesizer):
    content = synthesizer.synthesize(
        GENERIC_TEXT, additional_requirements="Security review required; must be responsive on mobile"
    )

    criteria = [ac.criterion for ac in content.acceptance_criteria]
    assert len(criteria) == 7
    assert criteria[5] == "Security requirements are satisfied"
    assert criteria[6] == "Mobile responsiveness is verified"
    assert content.acceptance_criteria[-1].id == "AC-007"


def test_synthesis_is_deterministic(synthesizer):
    first = synthesizer.synthesize(CLOTHING_TEXT, "browser compatibility")
    second = synthesizer.synthesize(CLOTHING_TEXT, "browser compatibility")

    assert first == second


@pytest.mark.parametrize("text", ["", "   ", "\n\n"])
def test_empty_text_is_rejected(synthesizer, text):
    with pytest.raises(ValidationError):
        synthesizer.synthesize(text)


def test_every_rule_produces_contiguous_steps(synthesizer):
    for rule in STEP_RULES:
        steps = synthesizer.build_steps(" ".join(step[0] for step in rule.steps))
        assert [s.step_number for s in steps] == list(range(1, len(steps) + 1))


def test_render_description_includes_sections(synthesizer):
    content = synthesizer.synthesize(GENERIC_TEXT)

    rendered = render_description(content)

    assert rendered.startswith("Test Objective: ")
    assert "Expected Results:" in rendered
    assert "- Valid Data:" in rendered
    assert "- AC-001 Functional requirements are met:" in rendered
