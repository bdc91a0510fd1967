"""
Backup Document Models

The JSON shape written by export and accepted by import:

    {
      "version": 1,
      "exportedAt": "...",
      "appVersion": "1.0.0",
      "data": {
        "allowanceSources": [...],
        "categories": [...],
        "months": [...],
        "expenses": [...],
        "profiles": [...]
      }
    }

"profiles" is optional on import; documents written before it existed omit it.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel

from monthwise.models.entities import AllowanceSource, Category, Expense, Month, Profile

EXPORT_VERSION = 1


class BackupData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    allowance_sources: list[AllowanceSource]
    categories: list[Category]
    months: list[Month]
    expenses: list[Expense]
    profiles: list[Profile] = Field(default_factory=list)

    @property
    def record_count(self) -> int:
        return (
            len(self.allowance_sources)
            + len(self.categories)
            + len(self.months)
            + len(self.expenses)
        )


class BackupDocument(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    version: StrictInt = Field(..., ge=1)
    exported_at: str
    app_version: str = "unknown"
    data: BackupData

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class ImportResult(BaseModel):
    success: bool
    records_imported: int
    profiles_restored: int = 0
    message: str
