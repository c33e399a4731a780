"""Heuristic test case synthesis from free-text requirements.

The output is deterministic: the same text always yields the same
``TestCaseContent``. Step selection is an ordered rule table evaluated
first-match-wins against the lowercased requirement text, wrapped between
fixed bootstrap steps and a closing verification step.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from xray_agent.core.exceptions import ValidationError
from xray_agent.models.schemas import (
    AcceptanceCriterion,
    Precondition,
    TestCaseContent,
    TestDataCategory,
    TestStep,
)

# (action, data, expected result)
StepTemplate = Tuple[str, str, str]


@dataclass(frozen=True)
class StepRule:
    name: str
    predicate: Callable[[str], bool]
    steps: Tuple[StepTemplate, ...]

    def matches(self, text: str) -> bool:
        return self.predicate(text)


def _has_any(text: str, words: Sequence[str]) -> bool:
    return any(word in text for word in words)


def _is_clothing_recommendation(text: str) -> bool:
    return (
        _has_any(text, ("cloth", "outfit", "apparel"))
        and _has_any(text, ("recommend", "suggest"))
        and _has_any(text, ("weather", "season", "region"))
    )


# inflected forms count ("creates", "adding"); "address" and "renew" do not
CREATION_WORDS = re.compile(r"\b(?:creat(?:e|es|ed|ing|ion)|add(?:s|ed|ing)?|new)\b")


def _is_creation(text: str) -> bool:
    return CREATION_WORDS.search(text) is not None


BOOTSTRAP_STEPS: Tuple[StepTemplate, ...] = (
    (
        "Navigate to the application",
        "Application URL",
        "Application home page loads successfully",
    ),
    (
        "Log in with valid user credentials",
        "Valid username and password",
        "User is authenticated and the main dashboard is displayed",
    ),
)

VERIFICATION_STEP: StepTemplate = (
    "Verify the overall functionality works as described in the requirement",
    "",
    "All functionality behaves as specified without errors",
)

FALLBACK_STEPS: Tuple[StepTemplate, ...] = (
    (
        "Access the feature under test",
        "",
        "Feature is accessible and displayed correctly",
    ),
)

STEP_RULES: Tuple[StepRule, ...] = (
    StepRule(
        name="clothing_recommendation",
        predicate=_is_clothing_recommendation,
        steps=(
            (
                "Open the clothing recommendation feature",
                "",
                "Clothing recommendation page is displayed",
            ),
            (
                "Enter or select the user's location",
                "City or region name, e.g. Seattle, WA",
                "Location is accepted and the region is identified",
            ),
            (
                "Verify the current weather conditions are retrieved",
                "",
                "Current temperature and conditions for the region are shown",
            ),
            (
                "Select the current season",
                "Season, e.g. Winter",
                "Season selection is applied",
            ),
            (
                "Request clothing recommendations",
                "",
                "A list of clothing recommendations is displayed",
            ),
            (
                "Verify the recommendations match the weather conditions",
                "",
                "Recommended items are suitable for the current temperature and conditions",
            ),
            (
                "Verify the recommendations are appropriate for the region and season",
                "",
                "Recommendations reflect regional and seasonal clothing norms",
            ),
        ),
    ),
    StepRule(
        name="creation",
        predicate=_is_creation,
        steps=(
            (
                "Open the creation form using the create/add button",
                "",
                "Creation form is displayed with all required fields",
            ),
            (
                "Fill in all required fields with valid data",
                "Valid values for every required field",
                "Fields accept the input without validation errors",
            ),
            (
                "Submit the form",
                "",
                "Item is created and a success confirmation is shown",
            ),
            (
                "Verify the new item appears in the list",
                "",
                "Newly created item is listed with the entered details",
            ),
        ),
    ),
)

BASELINE_PRECONDITIONS: Tuple[Precondition, ...] = (
    Precondition(
        id="PRE-001",
        condition="User has valid access credentials",
        description="A user account with the permissions required by the feature exists and can log in",
    ),
    Precondition(
        id="PRE-002",
        condition="Test environment is available and configured",
        description="The application under test is deployed, reachable and configured for testing",
    ),
    Precondition(
        id="PRE-003",
        condition="Required test data is prepared",
        description="Valid, invalid and boundary test data sets are available in the test environment",
    ),
)

EXPECTED_RESULTS: Tuple[str, ...] = (
    "Feature behaves as described in the requirement",
    "No errors or unexpected behaviour occur during execution",
    "User interface elements display correctly",
    "Data is saved and retrieved accurately",
)

TEST_DATA: Tuple[TestDataCategory, ...] = (
    TestDataCategory(
        category="Valid Data",
        description="Inputs that satisfy every rule of the feature",
        examples=["Typical values", "Required fields filled", "Expected formats"],
    ),
    TestDataCategory(
        category="Invalid Data",
        description="Inputs the feature must reject with a clear message",
        examples=["Empty required fields", "Wrong formats", "Unsupported characters"],
    ),
    TestDataCategory(
        category="Boundary Data",
        description="Inputs at the edges of allowed ranges",
        examples=["Minimum values", "Maximum values", "Maximum field lengths"],
    ),
)

BASELINE_ACCEPTANCE_CRITERIA: Tuple[Tuple[str, str], ...] = (
    ("Functional requirements are met", "All functionality described in the requirement works as specified"),
    ("Error handling is appropriate", "Invalid input and failure conditions are handled with clear messages"),
    ("User interface is usable", "Screens are clear, consistent and easy to navigate"),
    ("Performance is acceptable", "Actions complete within acceptable response times"),
    ("Data integrity is preserved", "Data is stored and displayed accurately and consistently"),
)

# (keywords, criterion, description); one extra criterion per matched group
REQUIREMENT_CRITERIA: Tuple[Tuple[Tuple[str, ...], str, str], ...] = (
    (("security",), "Security requirements are satisfied", "Access control and data protection requirements are enforced"),
    (("mobile", "responsive"), "Mobile responsiveness is verified", "The feature works and renders correctly on mobile devices and small screens"),
    (("browser", "compatibility"), "Cross-browser compatibility is verified", "The feature works consistently across supported browsers"),
)


def number_steps(templates: Sequence[StepTemplate]) -> List[TestStep]:
    return [
        TestStep(step_number=index, action=action, data=data, expected_result=expected)
        for index, (action, data, expected) in enumerate(templates, start=1)
    ]


def select_rule(text: str, rules: Sequence[StepRule] = STEP_RULES) -> Optional[StepRule]:
    lowered = text.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule
    return None


def first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


class ContentSynthesizer:
    """Builds a multi-section test case document from unstructured text"""

    def __init__(self, rules: Sequence[StepRule] = STEP_RULES):
        self.rules = tuple(rules)

    def synthesize(self, free_text: str, additional_requirements: Optional[str] = None) -> TestCaseContent:
        title = first_line(free_text or "")
        if not title:
            raise ValidationError("Requirement text is required to synthesize a test case")

        description = free_text.strip()
        if additional_requirements and additional_requirements.strip():
            description += f"\n\nAdditional Requirements:\n{additional_requirements.strip()}"

        return TestCaseContent(
            summary=f"Test: {title}",
            description=description,
            test_objective=f'Verify that "{title}" works as expected and meets all acceptance criteria',
            steps=self.build_steps(free_text),
            preconditions=list(BASELINE_PRECONDITIONS),
            expected_results=list(EXPECTED_RESULTS),
            test_data=list(TEST_DATA),
            acceptance_criteria=self.build_acceptance_criteria(additional_requirements),
        )

    def build_steps(self, text: str) -> List[TestStep]:
        rule = select_rule(text, self.rules)
        topical = rule.steps if rule else FALLBACK_STEPS
        return number_steps(BOOTSTRAP_STEPS + topical + (VERIFICATION_STEP,))

    def build_acceptance_criteria(self, additional_requirements: Optional[str] = None) -> List[AcceptanceCriterion]:
        entries = list(BASELINE_ACCEPTANCE_CRITERIA)
        extra = (additional_requirements or "").lower()
        for keywords, criterion, description in REQUIREMENT_CRITERIA:
            if _has_any(extra, keywords):
                entries.append((criterion, description))
        return [
            AcceptanceCriterion(id=f"AC-{index:03d}", criterion=criterion, description=description)
            for index, (criterion, description) in enumerate(entries, start=1)
        ]


def render_description(content: TestCaseContent) -> str:
    """Plain-text body submitted as the test issue description"""
    lines = [f"Test Objective: {content.test_objective}", "", content.description]

    lines += ["", "Expected Results:"]
    lines += [f"- {result}" for result in content.expected_results]

    lines += ["", "Test Data:"]
    for data in content.test_data:
        examples = f" (e.g. {', '.join(data.examples)})" if data.examples else ""
        lines.append(f"- {data.category}: {data.description}{examples}")

    lines += ["", "Acceptance Criteria:"]
    lines += [f"- {ac.id} {ac.criterion}: {ac.description}" for ac in content.acceptance_criteria]
    return "\n".join(lines)
