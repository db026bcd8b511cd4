from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

QuizType = Literal["fill-in", "spelling", "matching", "order-words", "composition"]
ExternalQuizType = Literal["fill_blank", "spelling", "matching", "order_words", "composition"]
LessonTitle = Literal["Grammar", "Vocabulary", "Passages", "Literature", "Composition"]

Points = Union[int, float]


class Record(BaseModel):
    """Immutable value record; documents use camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- curriculum hierarchy ----------

class Grade(Record):
    id: str
    name: str = ""
    description: Optional[str] = None
    is_published: bool = False


class Unit(Record):
    id: str
    grade_id: str
    number: int = 0
    is_published: bool = False
    # legacy fields still present on older documents
    title: Optional[str] = None
    description: Optional[str] = None


class Lesson(Record):
    id: str
    grade_id: str
    unit_id: str
    title: str = ""
    order: int = 0
    is_published: bool = False


class Section(Record):
    id: str
    grade_id: str
    unit_id: str
    lesson_id: str
    title: str = ""
    description: Optional[str] = None
    video_link: Optional[str] = None


class Quiz(Record):
    id: str = ""
    grade_id: str
    unit_id: str
    lesson_id: str
    section_id: str
    title: str = ""
    description: Optional[str] = None
    quiz_type: QuizType = "fill-in"
    is_published: bool = False
    ai_evaluation_prompt: Optional[str] = None


# ---------- questions (tagged by `type`) ----------

class QuestionBase(Record):
    id: str = ""
    quiz_id: str = ""
    prompt: str = ""
    explanation: Optional[str] = None
    order: int = 0
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    is_published: bool = False
    points: Optional[Points] = None


class Blank(Record):
    id: str
    answer: str = ""
    options: Optional[List[str]] = None


class FillInQuestion(QuestionBase):
    type: Literal["fill-in"] = "fill-in"
    blanks: List[Blank] = Field(default_factory=list)
    sentence: Optional[str] = None
    options: Optional[List[str]] = None


class SpellingQuestion(QuestionBase):
    type: Literal["spelling"] = "spelling"
    answers: List[str] = Field(default_factory=list)
    answer: Optional[str] = None


class MatchingPair(Record):
    id: str
    left: str = ""
    right: str = ""


class MatchingQuestion(QuestionBase):
    type: Literal["matching"] = "matching"
    pairs: List[MatchingPair] = Field(default_factory=list)


class OrderWordsQuestion(QuestionBase):
    type: Literal["order-words"] = "order-words"
    words: List[str] = Field(default_factory=list)
    correct_order: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    instruction_title: Optional[str] = None
    additional_words: Optional[List[str]] = None
    punctuation: Optional[List[str]] = None


class CompositionQuestion(QuestionBase):
    type: Literal["composition"] = "composition"


Question = Annotated[
    Union[FillInQuestion, SpellingQuestion, MatchingQuestion, OrderWordsQuestion, CompositionQuestion],
    Field(discriminator="type"),
]
QUESTION_ADAPTER: TypeAdapter = TypeAdapter(Question)


# ---------- request bodies ----------

class GradeDraft(BaseModel):
    name: str
    description: Optional[str] = None
    is_published: bool = False


class UnitDraft(BaseModel):
    number: int
    is_published: bool = False


class LessonDraft(BaseModel):
    title: LessonTitle
    order: Optional[int] = None
    is_published: bool = False


class SectionDraft(BaseModel):
    title: str
    description: Optional[str] = None
    video_link: Optional[str] = None


# partial updates: only fields sent by the client are written

class GradeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_published: Optional[bool] = None


class UnitUpdate(BaseModel):
    number: Optional[int] = None
    is_published: Optional[bool] = None


class LessonUpdate(BaseModel):
    title: Optional[LessonTitle] = None
    order: Optional[int] = None
    is_published: Optional[bool] = None


class SectionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    video_link: Optional[str] = None


class QuizDraft(BaseModel):
    title: str
    quiz_type: QuizType = "fill-in"
    description: Optional[str] = None
    is_published: bool = False
    ai_evaluation_prompt: Optional[str] = None


class QuizPayload(BaseModel):
    quiz: QuizDraft
    questions: List[Question] = Field(default_factory=list)


class QuizWithQuestions(BaseModel):
    quiz: Quiz
    questions: List[Question]


class CurriculumSnapshot(BaseModel):
    grades: List[Grade]
    units: List[Unit]
    lessons: List[Lesson]
    sections: List[Section]
    quizzes: List[Quiz]
    is_loading: bool
