"""Exception types raised by the planner."""


class PlannerError(RuntimeError):
    """Base class for planner failures."""


class ValidationError(PlannerError):
    pass


class NoDeadlineError(ValidationError):
    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} has no deadline set. Please update user settings.")
        self.user_id = user_id


class InvalidSettingError(ValidationError):
    pass


class NotFoundError(PlannerError):
    pass


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__(f"User with ID {user_id} not found")
        self.user_id = user_id


class SubjectNotFoundError(NotFoundError):
    def __init__(self, subject_id: str):
        super().__init__(f"Subject with ID {subject_id} not found")
        self.subject_id = subject_id


class ScheduleEntryNotFoundError(NotFoundError):
    def __init__(self, entry_id: int):
        super().__init__(f"Session {entry_id} not found in user schedule")
        self.entry_id = entry_id


class ConcurrencyError(PlannerError):
    pass


class LockBusyError(ConcurrencyError):
    """Another locked operation is in flight for the same user."""

    def __init__(self, user_id: str, lock_age: float):
        super().__init__(
            f"Another schedule operation is in progress for user {user_id} "
            f"(started {round(lock_age)}s ago)"
        )
        self.user_id = user_id
        self.lock_age = lock_age


class StorageError(PlannerError):
    pass
