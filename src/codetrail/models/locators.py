"""Validated tracker inputs.

Each element kind has its own locator struct; ``TrackerConfig`` ties one of
them to a repository, a start commit and a file path. All validation happens
when the value is built.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from codetrail.models.elements import ElementKind

BlockTypeName = Literal["if", "for", "async for", "while", "with", "async with", "try", "match"]


class _Locator(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def element_kind(self) -> ElementKind:
        return ElementKind(self.kind)  # type: ignore[attr-defined]


class ClassLocator(_Locator):
    """Locates a class by (simple or qualified) name."""

    kind: Literal["class"] = "class"
    class_name: str = Field(..., min_length=1, description="Simple or dotted class name")
    line: Optional[int] = Field(None, ge=1, description="Any line inside the class, to disambiguate")

    def describe(self) -> str:
        return f"class {self.class_name}"


class MethodLocator(_Locator):
    """Locates a method or function by name and declaration line."""

    kind: Literal["method"] = "method"
    method_name: str = Field(..., min_length=1, description="Method name")
    method_line: int = Field(..., ge=1, description="A line inside the method declaration")

    def describe(self) -> str:
        return f"method {self.method_name}"


class AttributeLocator(_Locator):
    """Locates a class attribute by name and declaration line."""

    kind: Literal["attribute"] = "attribute"
    attribute_name: str = Field(..., min_length=1, description="Attribute name")
    attribute_line: int = Field(..., ge=1, description="Line of the declaring statement")

    def describe(self) -> str:
        return f"attribute {self.attribute_name}"


class VariableLocator(_Locator):
    """Locates a variable inside a method (or at module level when method_name is omitted)."""

    kind: Literal["variable"] = "variable"
    method_name: Optional[str] = Field(None, min_length=1, description="Enclosing method name")
    method_line: Optional[int] = Field(None, ge=1, description="A line inside the enclosing method")
    variable_name: str = Field(..., min_length=1, description="Variable name")
    variable_line: int = Field(..., ge=1, description="Line of the declaring statement")

    @model_validator(mode="after")
    def _method_fields_together(self) -> "VariableLocator":
        if (self.method_name is None) != (self.method_line is None):
            raise ValueError("method_name and method_line must be given together")
        return self

    def describe(self) -> str:
        return f"variable {self.variable_name}"


class BlockLocator(_Locator):
    """Locates a compound statement inside a method."""

    kind: Literal["block"] = "block"
    method_name: str = Field(..., min_length=1, description="Enclosing method name")
    method_line: int = Field(..., ge=1, description="A line inside the enclosing method")
    block_type: BlockTypeName = Field(..., description="Statement type of the block")
    start_line: int = Field(..., ge=1, description="First line of the block")
    end_line: int = Field(..., ge=1, description="Last line of the block")

    @model_validator(mode="after")
    def _ordered_lines(self) -> "BlockLocator":
        if self.end_line < self.start_line:
            raise ValueError("end_line must not be before start_line")
        return self

    def describe(self) -> str:
        return f"{self.block_type} block"


ElementLocator = Annotated[
    Union[ClassLocator, MethodLocator, AttributeLocator, VariableLocator, BlockLocator],
    Field(discriminator="kind"),
]


class TrackerConfig(BaseModel):
    """Everything a tracker needs, checked up front."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    repository: Any = Field(..., description="RepositoryAccess implementation")
    start_commit: str = Field(..., min_length=1, description="Commit id to start from")
    file_path: str = Field(..., min_length=1, description="Repository-relative path of the file")
    locator: ElementLocator

    @model_validator(mode="after")
    def _check_repository(self) -> "TrackerConfig":
        if self.repository is None:
            raise ValueError("repository is required")
        for method in ("resolve_commit", "parents_touching", "read_blob"):
            if not callable(getattr(self.repository, method, None)):
                raise ValueError(f"repository does not provide {method}()")
        return self
