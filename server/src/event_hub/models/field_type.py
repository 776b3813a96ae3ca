"""Enums for the application"""

from enum import Enum


class FieldType(str, Enum):
    """Input kinds an organizer can put on a registration form"""

    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    CHECKBOX = "checkbox"
