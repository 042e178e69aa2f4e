# tablesync/db_sync/validation.py
import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..schema.column_set import MISSING, ColumnSet, RowView

logger = logging.getLogger(__name__)

# A domain rule inspects one incoming row and returns an error message or None
DomainRule = Callable[[RowView], Optional[str]]


def non_negative(column: str) -> DomainRule:
    """Rule rejecting negative numeric values in a column"""
    def rule(row: RowView) -> Optional[str]:
        value = row.get(column)
        if value is MISSING or value is None:
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if number < 0:
            return f"{column} must be >= 0"
        return None
    return rule


DEFAULT_RULES: Dict[str, List[DomainRule]] = {
    'tbl_stock_in_items': [non_negative('quantity_received')],
}


class RowValidator:
    """Pre-insert checks for constraints the engine does not control"""

    def __init__(self, rules: Optional[Mapping[str, Sequence[DomainRule]]] = None):
        source = DEFAULT_RULES if rules is None else rules
        self.rules: Dict[str, List[DomainRule]] = {
            table.lower(): list(checks) for table, checks in source.items()
        }

    def add_rule(self, table: str, rule: DomainRule) -> None:
        self.rules.setdefault(table.lower(), []).append(rule)

    def validate(self, table: str, row: RowView, columns: Sequence[str],
                 destination: ColumnSet) -> List[str]:
        """
        Validate one candidate row before it is inserted

        Args:
            table: Destination table name
            row: Incoming row
            columns: Reconciled column names (source spelling)
            destination: Destination column set

        Returns:
            Validation error messages, empty when the row may be inserted
        """
        errors = []
        reconciled = {name.lower() for name in columns}

        for required in destination.required:
            if required.lower() not in reconciled:
                continue
            source_name = next((name for name in columns if name.lower() == required.lower()), None)
            value = row.first_present(source_name, required)
            if value is MISSING or value is None:
                errors.append(f"Column '{required}' cannot be NULL")

        for rule in self.rules.get(table.lower(), []):
            message = rule(row)
            if message:
                errors.append(message)

        return errors
