"""Request, tool-argument and row shapes validated at the service boundaries."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class StoredForm(BaseModel):
    id: int
    data: Dict[str, Any]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_json(self):
        return self.model_dump(exclude_none=True)


class EmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str
    form_data: Dict[str, Any] = Field(alias="formData")
    subject: Optional[str] = None
    sender: Optional[str] = Field(default=None, alias="from")


class DeployRequest(BaseModel):
    access_token: str = Field(alias="netlifyAccessToken", min_length=1)
    site_id: Optional[str] = Field(default=None, alias="netlifySiteId")
    zip_contents: Optional[str] = Field(default=None, alias="zipContents")


class OpenAPIToolArguments(BaseModel):
    url: str
    format: Literal["json", "yaml"] = "json"


class FunctionMetadata(BaseModel):
    """Where a generic function call is executed: ``serverUrl`` + ``path``."""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    method: str = "GET"
    server_url: str = Field(alias="serverUrl")
    operation: Dict[str, Any] = Field(default_factory=dict)


def first_error_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    error = errors[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    return f"{location}: {message}" if location else message
