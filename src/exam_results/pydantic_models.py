from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Raw grading-service entries ─────────────────────────────────────────

# Non-finite scores are rejected; numeric ids and file names are kept as text.
RAW_CONFIG = ConfigDict(
    extra="ignore",
    allow_inf_nan=False,
    coerce_numbers_to_str=True,
    populate_by_name=True,
)


class RawQuestion(BaseModel):
    """One question entry as returned by the live grading API."""
    model_config = RAW_CONFIG

    num: Optional[int] = None
    type: Optional[str] = None
    reponse: Optional[str] = None
    point: float
    max_points: Optional[float] = None
    commentaire: Optional[str] = None


class RawCopy(BaseModel):
    """Live shape: server total plus per-question points, keyed by `copie_<n>`."""
    model_config = RAW_CONFIG

    note_totale: Optional[float] = None
    nom_fichier: Optional[str] = None
    db_id: Optional[str] = None
    questions: List[RawQuestion] = []

    @model_validator(mode="after")
    def require_scores(self) -> "RawCopy":
        if self.note_totale is None and not self.questions:
            raise ValueError("entry has neither 'note_totale' nor 'questions'")
        return self


class CachedDetail(BaseModel):
    """One question of a copy already reshaped for display (session cache)."""
    model_config = RAW_CONFIG

    question: int
    type: Optional[str] = None
    reponse: Optional[str] = None
    points: float
    max_points: Optional[float] = Field(default=None, alias="maxPoints")
    comment: Optional[str] = None


class CachedCopy(BaseModel):
    """Pre-aggregated shape, recognised by its `details` list."""
    model_config = RAW_CONFIG

    id: Optional[str] = None
    student_name: Optional[str] = Field(default=None, alias="nomEleve")
    note: Optional[float] = None
    details: List[CachedDetail]


RawCopyEntry = Union[RawCopy, CachedCopy]


def parse_copy_entry(data: Any) -> RawCopyEntry:
    """Validate one raw entry, branching on which shape it carries.

    Raises ValueError (pydantic's ValidationError included) when the entry
    cannot be parsed.
    """
    if not isinstance(data, dict):
        raise ValueError(f"expected an object, got {type(data).__name__}")
    if "details" in data:
        return CachedCopy.model_validate(data)
    return RawCopy.model_validate(data)


# ── Output contract (presentation / persistence) ────────────────────────

class QuestionDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: int
    type: str
    reponse: str
    points: float
    max_points: float = Field(alias="maxPoints")
    status: Literal["full", "partial", "zero"]
    comment: Optional[str] = None


class CopyResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    student_name: str = Field(alias="nomEleve")
    note: float
    max_note: float = Field(alias="maxNote")
    percent: float = Field(alias="pourcent")
    details: List[QuestionDetail]


class ResultSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    graded: int
    mean: float = Field(alias="moyenne")
    minimum: float = Field(alias="min")
    maximum: float = Field(alias="max")
    median: float
    distribution: Dict[str, int]


class ExamResultSet(BaseModel):
    """The unit persisted to the result cache and exported."""
    model_config = ConfigDict(populate_by_name=True)

    exam_id: str = Field(alias="examId")
    generated_at: datetime = Field(alias="generatedAt")
    summary: ResultSummary
    copies: List[CopyResult]

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)
