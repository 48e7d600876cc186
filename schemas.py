from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TestCase(BaseModel):
    """A named set of input lines and the output the program should print."""

    __test__ = False  # not a pytest class

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = "Cas de test"
    inputs: List[str] = Field(default_factory=list)
    expected_output: str = Field(default="", alias="expectedOutput")

    @model_validator(mode="before")
    @classmethod
    def _accept_single_input(cls, data):
        # Older clients send one newline-delimited 'input' string
        if isinstance(data, dict) and "inputs" not in data and "input" in data:
            data = dict(data)
            raw = data.pop("input") or ""
            data["inputs"] = raw.split("\n") if raw else []
        return data

    @property
    def test_input(self) -> str:
        return "\n".join(self.inputs)


class TestResult(TestCase):
    actual_output: str = Field(default="", alias="actualOutput")
    passed: bool = False


class ExecutionResult(BaseModel):
    success_output: Optional[str] = Field(default=None, alias="successOutput")
    error_output: Optional[str] = Field(default=None, alias="errorOutput")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def ok(self) -> bool:
        return not self.error_output


class Analysis(BaseModel):
    explanation: str
    confident: bool


class GeneratedTestCase(BaseModel):
    name: str
    inputs: List[str] = Field(default_factory=list)
    expectedOutput: str = ""


class GeneratedTestCases(BaseModel):
    generatedTestCases: List[GeneratedTestCase]
