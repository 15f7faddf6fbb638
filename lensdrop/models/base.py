"""JsonModel base class for API communication."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """Base model with camelCase on the wire and snake_case in Python.

    The browser front-end posts `imageUrl` and reads `screenshotUrl`;
    handlers work with `image_url` / `screenshot_url`.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def model_dump_json(self, **kwargs) -> str:
        """Override to ensure camelCase in JSON output."""
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)

    def to_dict(
        self,
        by_alias: bool | None = None,
        mode: Literal["json", "python"] = "python",
    ) -> dict[str, Any]:
        """Convert to a dictionary; `mode="json"` implies camelCase keys."""
        return self.model_dump(
            exclude_none=True,
            by_alias=by_alias or (mode == "json"),
            mode=mode,
        )
