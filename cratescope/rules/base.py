"""Base class for rule plugins."""

from abc import ABC, abstractmethod
from typing import List

from ..models import FactSet, Finding


class Rule(ABC):
    """Contract for rules that turn the merged fact set into findings."""

    code: str = ""
    name: str = ""

    @abstractmethod
    def run(self, facts: FactSet) -> List[Finding]:
        """Return findings in emission order; an empty list when nothing matches."""
