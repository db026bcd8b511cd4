"""Translation between the authoring quiz vocabulary and the learner app's."""
from typing import Dict, Optional

from ..schemas import ExternalQuizType, QuizType

AUTHORING_TYPES: tuple[QuizType, ...] = ("fill-in", "spelling", "matching", "order-words", "composition")
EXTERNAL_TYPES: tuple[ExternalQuizType, ...] = ("fill_blank", "spelling", "matching", "order_words", "composition")

_TO_EXTERNAL: Dict[str, ExternalQuizType] = dict(zip(AUTHORING_TYPES, EXTERNAL_TYPES))

# both spellings are accepted on the way back in
_TO_AUTHORING: Dict[str, QuizType] = {
    **dict(zip(EXTERNAL_TYPES, AUTHORING_TYPES)),
    **{t: t for t in AUTHORING_TYPES},
}


def to_external(quiz_type: Optional[str]) -> ExternalQuizType:
    return _TO_EXTERNAL.get(quiz_type or "", "fill_blank")


def to_authoring(external_type: Optional[str]) -> QuizType:
    return _TO_AUTHORING.get(external_type or "", "fill-in")
