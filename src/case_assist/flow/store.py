"""In-memory suggestion store with a sequence guard."""

from __future__ import annotations

from collections.abc import Mapping

from case_assist.config import FieldMapping, SuggestionConfig
from case_assist.types import Prediction, SuggestionSet


class SuggestionStore:
    """Holds the latest suggestion set per field name.

    Sets are replaced wholesale. A replacement tagged with a sequence number
    that is not greater than the last applied one is rejected, so a slow
    response can never overwrite the result of a more recent request.
    """

    def __init__(
        self,
        fields: FieldMapping | None = None,
        config: SuggestionConfig | None = None,
    ) -> None:
        self.fields = fields or FieldMapping()
        self.config = config or SuggestionConfig()
        self._current = SuggestionSet()
        self._applied_sequence = 0

    @property
    def current(self) -> SuggestionSet:
        return self._current

    @property
    def applied_sequence(self) -> int:
        return self._applied_sequence

    def replace(self, new_set: SuggestionSet, *, sequence: int) -> bool:
        if sequence <= self._applied_sequence:
            return False
        self._current = new_set
        self._applied_sequence = sequence
        return True

    def get(self, field_name: str) -> tuple[Prediction, ...]:
        return self._current.get(field_name)

    def readiness(self, record: Mapping[str, str | None]) -> bool:
        """Whether the record holds enough text to justify a suggestion request."""
        subject = record.get(self.fields.subject)
        description = record.get(self.fields.description)
        return bool(subject) and bool(description) and (
            len(description) >= self.config.min_description_length
        )
