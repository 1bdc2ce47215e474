import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..models import ChoiceMetadata, QuestionMetadata

logger = logging.getLogger(__name__)


class MetadataIndex:
    """Joins the question table and the choice table on the question key.

    Lookups never raise: an unknown question has no choices and a label made of
    its raw key.
    """

    def __init__(self, questions: Iterable[QuestionMetadata] = (), choices: Iterable[ChoiceMetadata] = ()):
        self._questions: Dict[str, QuestionMetadata] = {}
        self._choices: Dict[str, List[ChoiceMetadata]] = {}
        for q in questions:
            if q.key in self._questions:
                logger.warning(f"Duplicate question metadata for '{q.key}', keeping the first row")
                continue
            self._questions[q.key] = q
        for c in choices:
            bucket = self._choices.setdefault(c.question_key, [])
            if any(x.choice_key == c.choice_key for x in bucket):
                logger.warning(f"Duplicate choice '{c.choice_key}' for question '{c.question_key}', keeping the first row")
                continue
            bucket.append(c)

    def choices_for(self, question_key: str, type_data: Optional[str] = None) -> List[ChoiceMetadata]:
        """Choices of a question in table order (the canonical display order)."""
        rows = self._choices.get(question_key, [])
        if type_data:
            rows = [c for c in rows if c.type_data == type_data]
        return list(rows)

    def question_label(self, question_key: str) -> QuestionMetadata:
        q = self._questions.get(question_key)
        if q is None:
            logger.debug(f"No question metadata for '{question_key}', falling back to the raw key")
            return QuestionMetadata(key=question_key)
        return q

    def choice(self, question_key: str, choice_key: str) -> Optional[ChoiceMetadata]:
        for c in self._choices.get(question_key, []):
            if c.choice_key == choice_key:
                return c
        return None

    def has_question(self, question_key: str) -> bool:
        return question_key in self._questions or question_key in self._choices

    def question_keys(self) -> List[str]:
        """Every known question key, question table first, then choice-only keys."""
        keys = list(self._questions)
        keys += [k for k in self._choices if k not in self._questions]
        return keys

    def questions_where(self, predicate: Callable[[QuestionMetadata], bool]) -> List[QuestionMetadata]:
        return [q for q in self._questions.values() if predicate(q)]

    def choices_where(self, predicate: Callable[[ChoiceMetadata], bool]) -> List[ChoiceMetadata]:
        return [c for rows in self._choices.values() for c in rows if predicate(c)]
