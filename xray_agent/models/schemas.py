from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum


class CreationStage(str, Enum):
    PRECONDITION = "precondition"
    TEST = "test"
    LINK = "link"


class CreationState(str, Enum):
    IDLE = "idle"
    PRECONDITIONS_IN_FLIGHT = "preconditions_in_flight"
    TEST_CREATION_IN_FLIGHT = "test_creation_in_flight"
    LINKING_IN_FLIGHT = "linking_in_flight"
    DONE = "done"
    FAILED = "failed"


class TestStep(BaseModel):
    step_number: int = Field(..., ge=1, description="1-based position of the step")
    action: str = Field(..., description="Action to be performed")
    data: str = Field("", description="Test data required for this step")
    expected_result: str = Field(..., description="Expected result of the action")

    class Config:
        frozen = True


class Precondition(BaseModel):
    id: str
    condition: str = Field(..., description="Short statement, used as the precondition issue summary")
    description: str = Field("", description="Precondition definition")

    class Config:
        frozen = True


class TestDataCategory(BaseModel):
    category: str
    description: str
    examples: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class AcceptanceCriterion(BaseModel):
    id: str
    criterion: str
    description: str

    class Config:
        frozen = True


class TestCaseContent(BaseModel):
    summary: str
    description: str
    test_objective: str
    steps: List[TestStep] = Field(default_factory=list)
    preconditions: List[Precondition] = Field(default_factory=list)
    expected_results: List[str] = Field(default_factory=list)
    test_data: List[TestDataCategory] = Field(default_factory=list)
    acceptance_criteria: List[AcceptanceCriterion] = Field(default_factory=list)

    class Config:
        frozen = True


class LinkTypeDescriptor(BaseModel):
    id: str
    name: str
    inward: str = ""
    outward: str = ""


class ResolvedIssue(BaseModel):
    key: str
    numeric_id: str
    base_url: str


class IssueDetails(BaseModel):
    key: str
    summary: str = ""
    description_text: str = ""
    status: Optional[str] = None

    def as_requirement_text(self) -> str:
        """Summary on the first line, flattened description below it"""
        if self.description_text:
            return f"{self.summary}\n\n{self.description_text}"
        return self.summary


class FailedItem(BaseModel):
    stage: CreationStage
    item: str = Field(..., description="Identifier of the item that failed")
    error: str


class CreationResult(BaseModel):
    issue_id: str
    key: Optional[str] = None
    url: Optional[str] = None
    steps_created: int = 0
    preconditions_created: int = 0
    user_story_linked: bool = False
    precondition_issue_ids: List[str] = Field(default_factory=list)
    failures: List[FailedItem] = Field(default_factory=list)


class SynthesizeRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Free-text requirement or user story")
    additional_requirements: Optional[str] = None


class CreateTestCaseRequest(BaseModel):
    text: Optional[str] = Field(None, description="Free-text requirement; fetched from user_story when omitted")
    user_story: Optional[str] = Field(None, description="Issue key or browse URL of the originating requirement")
    project_key: Optional[str] = None
    additional_requirements: Optional[str] = None
    jira_base_url: Optional[str] = None


class CreateTestCaseResponse(BaseModel):
    content: TestCaseContent
    result: CreationResult
    message: str
