"""
Custom exceptions for the quest engine.
Every exception carries a stable error code, a category used to pick the
caller-facing response, and whether retrying the whole operation may help.
"""

CATEGORY_VALIDATION = "validation"
CATEGORY_NOT_FOUND = "not_found"
CATEGORY_CONFLICT = "conflict"
CATEGORY_TRANSIENT = "transient"
CATEGORY_INTERNAL = "internal"


class QuestEngineException(Exception):
    """Base exception for the quest engine"""
    error_code = "SERVER_ERROR"
    category = CATEGORY_INTERNAL
    retryable = False


class ValidationException(QuestEngineException):
    """Raised when input is malformed, before any transaction opens"""
    error_code = "VALIDATION_ERROR"
    category = CATEGORY_VALIDATION

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error for {field}: {message}")


class NotFoundException(QuestEngineException):
    """Raised when a referenced entity does not exist or is not the caller's"""
    error_code = "NOT_FOUND"
    category = CATEGORY_NOT_FOUND


class AssignmentNotFoundException(NotFoundException):
    """Raised when an assignment is missing or belongs to another user"""
    error_code = "ASSIGNMENT_NOT_FOUND"

    def __init__(self, assignment_id: int):
        self.assignment_id = assignment_id
        super().__init__(
            f"Quest assignment {assignment_id} not found or does not belong to user"
        )


class NoAssignmentsException(NotFoundException):
    """Raised when a reroll targets a period with nothing assigned"""
    error_code = "NO_ASSIGNMENTS"

    def __init__(self, assignment_type: str, period_key):
        self.assignment_type = assignment_type
        self.period_key = period_key
        super().__init__(f"No {assignment_type} quests found for {period_key}")


class ConflictException(QuestEngineException):
    """Raised when a business rule rejects the operation"""
    error_code = "CONFLICT"
    category = CATEGORY_CONFLICT


class RerollLimitExceededException(ConflictException):
    """Raised when the reroll budget for the period is already spent"""
    error_code = "REROLL_LIMIT_EXCEEDED"

    def __init__(self, assignment_type: str, period_key):
        self.assignment_type = assignment_type
        self.period_key = period_key
        period_name = "day" if assignment_type == "daily" else "week"
        super().__init__(
            f"You can only reroll your {assignment_type} quests once per {period_name}"
        )


class QuestAlreadyCompletedException(ConflictException):
    """Raised when a reroll targets a set containing a completed quest"""
    error_code = "QUEST_ALREADY_COMPLETED"

    def __init__(self, assignment_type: str):
        self.assignment_type = assignment_type
        super().__init__(
            f"Cannot reroll {assignment_type} quests when one or more are already completed"
        )


class AlreadyCompletedException(ConflictException):
    """Raised when completing an assignment that is already completed"""
    error_code = "ALREADY_COMPLETED"

    def __init__(self, assignment_id: int):
        self.assignment_id = assignment_id
        super().__init__(f"Quest assignment {assignment_id} is already completed")


class NotCompletedException(ConflictException):
    """Raised when uncompleting an assignment that is not completed"""
    error_code = "QUEST_NOT_COMPLETED"

    def __init__(self, assignment_id: int):
        self.assignment_id = assignment_id
        super().__init__(f"Quest assignment {assignment_id} is not completed, cannot unmark")


class InsufficientQuestsException(ConflictException):
    """Raised when the active quest pool cannot satisfy a selection"""
    error_code = "INSUFFICIENT_QUESTS"

    def __init__(self, difficulty: str, required: int, available: int):
        self.difficulty = difficulty
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough {difficulty} quests available: need {required}, have {available}"
        )


class TransientStorageException(QuestEngineException):
    """Raised when the database connection fails or times out"""
    error_code = "STORAGE_UNAVAILABLE"
    category = CATEGORY_TRANSIENT
    retryable = True

    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        super().__init__(f"Database {operation} failed: {details}")


class BadgeRequirementException(QuestEngineException):
    """Raised when a badge definition cannot be turned into a requirement"""
    error_code = "INVALID_BADGE_REQUIREMENT"

    def __init__(self, badge_id: int, message: str):
        self.badge_id = badge_id
        super().__init__(f"Badge {badge_id} has an invalid requirement: {message}")
