"""Recipe documents.

A recipe is a YAML document describing how to gather inputs with tools,
which prompts to send to the model, and what to do with the answer::

    name: summarize
    allowedTools: [readText]
    vars:
      file_content:
        tool: readText
        args: ["{{arg1}}"]
    system: You summarize files.
    userTemplate: "File: {{arg1}}\\nBody: {{file_content}}"
    postActions:
      - when: "{{save|false}}"
        call: {tool: writeFile, args: {path: out.md, content: "{{output}}"}}
    defaults:
      format: markdown

Unknown keys are ignored. Models are immutable once loaded.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = ["ToolCall", "PostAction", "RecipeDefinition"]


class _RecipeModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ToolCall(_RecipeModel):
    """A tool invocation; ``args`` may be a list, a map, a scalar or absent."""

    tool: str = Field(min_length=1)
    args: Any = None


class PostAction(_RecipeModel):
    """A tool call run after the model answers, when ``when`` renders truthy."""

    when: Optional[str] = None
    call: ToolCall


class RecipeDefinition(_RecipeModel):
    name: str = Field(min_length=1)
    version: int = 3
    description: Optional[str] = None
    allowed_tools: List[str] = Field(default_factory=list, alias="allowedTools")
    vars: Dict[str, ToolCall] = Field(default_factory=dict)
    system: str
    user_template: str = Field(alias="userTemplate")
    post_actions: List[PostAction] = Field(default_factory=list, alias="postActions")
    defaults: Dict[str, str] = Field(default_factory=dict)

    # An empty YAML key (`vars:`) loads as None.
    @field_validator("allowed_tools", "post_actions", mode="before")
    @classmethod
    def _none_is_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("vars", mode="before")
    @classmethod
    def _none_is_empty_map(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("defaults", mode="before")
    @classmethod
    def _scalar_defaults(cls, value: Any) -> Any:
        # YAML turns `count: 3` or `save: true` into non-strings.
        if value is None:
            return {}
        if isinstance(value, dict):
            return {
                str(k): ("" if v is None else ("true" if v is True else "false" if v is False else str(v)))
                for k, v in value.items()
            }
        return value

    @property
    def is_unrestricted(self) -> bool:
        """True when ``allowedTools`` is empty and every tool may be used."""
        return not self.allowed_tools

    def referenced_tools(self) -> List[str]:
        """Tool names used by ``vars`` and ``postActions``, in order, deduplicated."""
        names: List[str] = []
        for call in list(self.vars.values()) + [a.call for a in self.post_actions]:
            if call.tool not in names:
                names.append(call.tool)
        return names

    def to_document(self) -> Dict[str, Any]:
        """The YAML-shaped mapping (camelCase keys, empty fields omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True)
