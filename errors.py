"""
Domain errors for the Skill Tracker engine.

Every error carries the HTTP status the API answers with, so routes never
need to know which rule was broken.
"""


class SkillEngineError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CollaboratorUnavailable(SkillEngineError):
    """Challenge generator, grader, recommender or role analyzer failed."""

    status_code = 503


class InsufficientBalance(SkillEngineError):
    def __init__(self, required: int, available: int):
        super().__init__(f"Insufficient XP: need {required}, have {available}")
        self.required = required
        self.available = available


class NotOwned(SkillEngineError):
    status_code = 403


class AlreadyOwned(SkillEngineError):
    pass


class LockedSkill(SkillEngineError):
    status_code = 423


class LevelNotUnlocked(SkillEngineError):
    pass


class PrerequisiteCycle(SkillEngineError):
    def __init__(self, path):
        super().__init__("Prerequisite cycle: " + " -> ".join(path))
        self.path = list(path)


class RecordNotFound(SkillEngineError):
    status_code = 404


class SessionNotFound(RecordNotFound):
    pass


class ItemNotFound(RecordNotFound):
    pass


class InvalidSessionState(SkillEngineError):
    status_code = 409


class SessionClosed(InvalidSessionState):
    pass


class NoHintsRemaining(InvalidSessionState):
    pass


class ConcurrentModification(SkillEngineError):
    status_code = 409


class DatabaseNotConfigured(SkillEngineError):
    status_code = 500

    def __init__(self, message: str = "Database not configured"):
        super().__init__(message)
