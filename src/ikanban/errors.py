class InvalidInputError(ValueError):
    """Raised for malformed ids, directories or timestamps.

    Always raised before any call to the agent runtime or git.
    """


class TaskStateError(ValueError):
    """Raised when an operation does not fit the task's lifecycle state."""


class TaskNotFoundError(TaskStateError):
    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class RuntimeCallError(RuntimeError):
    """The agent runtime answered with an error or without data."""


class GitCommandError(RuntimeError):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, command: list[str], stderr: str, exit_code: int):
        self.command = command
        self.stderr = stderr
        self.exit_code = exit_code
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"Command failed: {' '.join(command)}: {detail}")
