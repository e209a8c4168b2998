"""Pydantic models for the API blueprint format (.json / .yaml).

The blueprint is the aggregate produced by ``apimap analyze``: the endpoint
catalog, the authentication schemes in use and the multi-step flows that
chain endpoints together.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

ParameterLocation = Literal["path", "query", "header"]
ParameterType = Literal["string", "integer", "number", "boolean", "array", "object"]
AuthType = Literal["none", "bearer", "session", "apiKey", "basic", "oauth2"]


class ApiParameter(BaseModel):
    name: str
    location: ParameterLocation
    type: ParameterType = "string"
    required: bool = False
    observed_values: list[str] = Field(default_factory=list)
    example: str | None = None
    description: str | None = None


class JsonSchema(BaseModel):
    type: ParameterType | Literal["null"] = "string"
    format: str | None = None
    properties: dict[str, JsonSchema] | None = None
    items: JsonSchema | None = None
    required: list[str] | None = None
    example: Any = None


class BodyExample(BaseModel):
    name: str
    value: str
    exchange_id: str | None = None


class RequestBodySpec(BaseModel):
    content_type: str
    schema_: JsonSchema | None = Field(default=None, alias="schema")
    examples: list[BodyExample] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class ResponseSpec(BaseModel):
    status_code: int
    description: str = ""
    content_type: str | None = None
    schema_: JsonSchema | None = Field(default=None, alias="schema")
    examples: list[BodyExample] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class EndpointMetadata(BaseModel):
    hit_count: int = 0
    first_seen: int
    last_seen: int
    avg_response_time_ms: int | None = None
    success_rate: float | None = None


class ApiEndpoint(BaseModel):
    id: str
    method: str
    host: str = ""
    path_template: str
    path_parameters: list[ApiParameter] = Field(default_factory=list)
    query_parameters: list[ApiParameter] = Field(default_factory=list)
    header_parameters: list[ApiParameter] = Field(default_factory=list)
    request_body: RequestBodySpec | None = None
    responses: list[ResponseSpec] = Field(default_factory=list)
    auth_required: AuthType = "none"
    example_exchange_ids: list[str] = Field(default_factory=list)
    metadata: EndpointMetadata
    tags: list[str] = Field(default_factory=list)


# -- Authentication -----------------------------------------------------------


class TokenSource(BaseModel):
    """Where a bearer token was first handed out by the server."""

    exchange_id: str | None = None
    json_path: str | None = None
    header_name: str | None = None


class BearerTokenPattern(BaseModel):
    type: Literal["bearer"] = "bearer"
    header_name: str = "Authorization"
    token_prefix: str = "Bearer"
    token_source: TokenSource | None = None


class SessionCookiePattern(BaseModel):
    type: Literal["session"] = "session"
    cookie_name: str
    domain: str | None = None


class ApiKeyPattern(BaseModel):
    type: Literal["apiKey"] = "apiKey"
    location: Literal["header", "query"] = "header"
    parameter_name: str


class BasicAuthPattern(BaseModel):
    type: Literal["basic"] = "basic"
    header_name: str = "Authorization"


class OAuth2Pattern(BaseModel):
    type: Literal["oauth2"] = "oauth2"
    token_endpoint: str
    grant_type: str | None = None
    scopes: list[str] = Field(default_factory=list)


AuthPattern = Annotated[
    Union[BearerTokenPattern, SessionCookiePattern, ApiKeyPattern, BasicAuthPattern, OAuth2Pattern],
    Field(discriminator="type"),
]


# -- Flows --------------------------------------------------------------------


class StaticValue(BaseModel):
    kind: Literal["static"] = "static"
    value: str


class UserInput(BaseModel):
    kind: Literal["user_input"] = "user_input"
    name: str
    description: str | None = None


class FromVariable(BaseModel):
    kind: Literal["variable"] = "variable"
    extractor_name: str


ParameterBinding = Annotated[
    Union[StaticValue, UserInput, FromVariable],
    Field(discriminator="kind"),
]


class JsonPathSource(BaseModel):
    kind: Literal["json_path"] = "json_path"
    path: str


class HeaderSource(BaseModel):
    kind: Literal["header"] = "header"
    header_name: str


class CookieSource(BaseModel):
    kind: Literal["cookie"] = "cookie"
    cookie_name: str


class RegexSource(BaseModel):
    kind: Literal["regex"] = "regex"
    pattern: str
    group: int = 1


ExtractionSource = Annotated[
    Union[JsonPathSource, HeaderSource, CookieSource, RegexSource],
    Field(discriminator="kind"),
]


class ResponseExtractor(BaseModel):
    variable_name: str
    source: ExtractionSource


class FlowStep(BaseModel):
    order: int
    endpoint_id: str
    description: str = ""
    parameter_bindings: dict[str, ParameterBinding] = Field(default_factory=dict)
    expected_status: int | None = None
    extractors: list[ResponseExtractor] = Field(default_factory=list)


class ApiFlow(BaseModel):
    id: str
    name: str
    description: str | None = None
    steps: list[FlowStep] = Field(default_factory=list)
    source_action_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


# -- Aggregate ----------------------------------------------------------------


class BlueprintMetadata(BaseModel):
    total_exchanges_analyzed: int = 0
    unique_endpoints_detected: int = 0
    auth_patterns_detected: int = 0
    flows_detected: int = 0
    coverage_percent: float = 0.0
    generated_by: str = "apimap"


class ApiBlueprint(BaseModel):
    id: str
    project_id: str
    name: str
    description: str | None = None
    base_url: str = ""
    endpoints: list[ApiEndpoint] = Field(default_factory=list)
    auth_patterns: list[AuthPattern] = Field(default_factory=list)
    flows: list[ApiFlow] = Field(default_factory=list)
    metadata: BlueprintMetadata = Field(default_factory=BlueprintMetadata)
    created_at: str
    updated_at: str

    def get_endpoint(self, endpoint_id: str) -> ApiEndpoint | None:
        for ep in self.endpoints:
            if ep.id == endpoint_id:
                return ep
        return None
