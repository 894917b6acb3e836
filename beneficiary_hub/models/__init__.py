"""Domain models for the beneficiary hub.

Records, the fixed field schema, column mappings, teams and result types.
"""

from .beneficiary import BeneficiaryRecord, RecordValidationError, parse_amount
from .column_mapping import ColumnMapping, MappingError
from .fields import BENEFICIARY_FIELDS, FIELD_KEYS, FieldSpec
from .team import FormLink, Role, Session, Team, TeamMember

__all__ = [
    # Records
    "BeneficiaryRecord",
    "RecordValidationError",
    "parse_amount",
    # Schema & mapping
    "BENEFICIARY_FIELDS",
    "FIELD_KEYS",
    "FieldSpec",
    "ColumnMapping",
    "MappingError",
    # Teams
    "FormLink",
    "Role",
    "Session",
    "Team",
    "TeamMember",
]
