"""Form-related enums."""

from enum import Enum


class FormInstanceStatus(str, Enum):
    """Lifecycle status of a form instance."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class QuestionType(str, Enum):
    """Question types supported by form templates."""

    TEXT_INPUT = "text_input"
    NUMERIC_INPUT = "numeric_input"
    DATE = "date"
    DATETIME = "datetime"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    YES_NO = "yes_no"
    FILE_UPLOAD = "file_upload"
    SECTION_HEADER = "section_header"
