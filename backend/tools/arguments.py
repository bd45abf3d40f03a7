from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .contracts import InvalidArgsError


class ToolArgs(BaseModel):
    # Models advertise camelCase; snake_case spellings are accepted too.
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ReadFileArgs(ToolArgs):
    path: str = Field(min_length=1)
    start_line: int | None = Field(default=None, alias="startLine")
    end_line: int | None = Field(default=None, alias="endLine")
    encoding: str = "utf-8"
    max_chars: int | None = Field(default=None, alias="maxChars", ge=1)


class EditArgs(ToolArgs):
    path: str = Field(min_length=1)
    mode: str = Field(min_length=1)
    content: str | None = None
    start_line: int | None = Field(default=None, alias="startLine")
    end_line: int | None = Field(default=None, alias="endLine")
    find: str | None = None
    replace: str | None = None
    use_regex: bool = Field(default=False, alias="useRegex")


class SearchArgs(ToolArgs):
    query: str = ""
    is_regex: bool = Field(default=False, alias="isRegex")
    include_pattern: str | None = Field(default=None, alias="includePattern")
    max_results: int | None = Field(default=None, alias="maxResults")


class ListFilesArgs(ToolArgs):
    path: str | None = None
    include_pattern: str | None = Field(default=None, alias="includePattern")
    max_results: int | None = Field(default=None, alias="maxResults")


class PatchOperationArgs(ToolArgs):
    type: Literal["create_file", "update_file", "delete_file"]
    path: str = Field(min_length=1)
    diff: str | None = None

    @model_validator(mode="after")
    def _diff_required_for_writes(self) -> "PatchOperationArgs":
        if self.type != "delete_file" and self.diff is None:
            raise ValueError(f"diff is required for {self.type}")
        return self


class ApplyPatchArgs(ToolArgs):
    input: str | None = None
    operation: PatchOperationArgs | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "ApplyPatchArgs":
        has_input = bool(self.input and self.input.strip())
        if has_input == (self.operation is not None):
            raise ValueError("provide exactly one of 'input' or 'operation'")
        return self


ArgsModel = TypeVar("ArgsModel", bound=ToolArgs)


def _format_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]


def parse_args(model: type[ArgsModel], args: dict[str, Any]) -> ArgsModel:
    try:
        return model.model_validate(args)
    except ValidationError as exc:
        items = _format_errors(exc)
        summary = "; ".join(
            f"{item['field']}: {item['message']}" if item["field"] else item["message"]
            for item in items
        )
        raise InvalidArgsError(f"Invalid arguments: {summary}", details={"errors": items}) from exc
