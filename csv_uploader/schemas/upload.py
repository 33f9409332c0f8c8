"""
Pydantic schemas for column mappings, database options and upload results.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RuleSpec(BaseModel):
    """A named transformer or validator with its parameters."""
    model_config = ConfigDict(frozen=True)

    name: str
    params: Dict[str, Any] = Field(default_factory=dict)


def normalize_rules(value: Any) -> List[RuleSpec]:
    """
    Normalize the rule formats accepted in configuration files.

    Accepted forms:
        "email"                                   -> [email]
        ["lower", "ucfirst"]                      -> [lower, ucfirst]
        {"string": {"min_length": 1}}             -> [string(min_length=1)]
        [{"string": {"max_length": 10}}, "email"] -> [string(...), email]
        {"name": "trim", "params": {...}}         -> [trim(...)]

    Args:
        value: Raw rule declaration from the column mapping

    Returns:
        Ordered list of RuleSpec
    """
    if value is None:
        return []
    if isinstance(value, (str, RuleSpec)) or (isinstance(value, dict) and "name" in value):
        value = [value]
    if isinstance(value, dict):
        value = [{name: params} for name, params in value.items()]

    rules: List[RuleSpec] = []
    for item in value:
        if isinstance(item, RuleSpec):
            rules.append(item)
        elif isinstance(item, str):
            rules.append(RuleSpec(name=item))
        elif isinstance(item, dict) and "name" in item:
            rules.append(RuleSpec(name=item["name"], params=item.get("params") or {}))
        elif isinstance(item, dict):
            for name, params in item.items():
                rules.append(RuleSpec(name=name, params=params or {}))
        else:
            raise ValueError(f"Unsupported rule declaration: {item!r}")
    return rules


class ColumnSpec(BaseModel):
    """Declaration of one column: DB type, constraints and processing rules."""
    model_config = ConfigDict(frozen=True)

    type: Literal["string", "integer"] = "string"
    nullable: bool = True
    unique: bool = False
    transformer: List[RuleSpec] = Field(default_factory=list)
    validator: List[RuleSpec] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        v = str(v).strip().lower()
        return "integer" if v == "int" else v

    @field_validator("transformer", "validator", mode="before")
    @classmethod
    def normalize_rule_list(cls, v):
        return normalize_rules(v)


ColumnMapping = Dict[str, ColumnSpec]


class DatabaseOptions(BaseModel):
    """Connection options; which keys are required depends on the driver."""
    driver: str = ""
    host: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    dbname: Optional[str] = None
    path: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)

    def masked(self) -> Dict[str, Any]:
        """Options safe to write to logs."""
        data = self.model_dump()
        if data.get("password"):
            data["password"] = "***"
        return data


class UploadResult(BaseModel):
    """Summary of a finished upload."""
    model_config = ConfigDict(frozen=True)

    inserted: int = Field(description="Rows written to the table")
    processed: int = Field(description="Data lines seen in the file")
    skipped: int = Field(description="Invalid rows plus failed batches")
    errors: List[str] = Field(default_factory=list, description="Human-readable error lines")


class TableCreatedResponse(BaseModel):
    """Response after creating the import table."""
    table: str
    created: bool = True
