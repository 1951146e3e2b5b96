NO_TASKS = "No tasks yet. Send /add <title> to create one."
TASK_LIST_HEADER = "Tasks:"

ASK_TITLE = "Title for the new task?"
ASK_SUBTASK_TITLE = "Title for the new subtask?"
TITLE_REQUIRED = "Send a title, or /cancel."

PICK_DEPENDENCY = "Pick the task it should wait on:"
NO_DEPENDENCY_CANDIDATES = "No tasks available to depend on."
PICK_PARENT = "Move under which task?"
NO_PARENT_CANDIDATES = "No tasks available to move under. Create a parent task first."

SAVE_FAILED = "Saving failed. Your change was not stored, please try again."
TASK_GONE = "That task no longer exists."
CANCELLED = "Cancelled."
TASK_ADDED = "Task added."
TASK_DELETED = "Deleted 🗑️"
TASK_COMPLETED = "Marked done ✅"
TASK_REOPENED = "Reopened."
TIMER_STARTED = "Timer started ▶️"
TIMER_STOPPED = "Timer stopped ⏹"
DEPENDENCY_ADDED = "Dependency added 🔗"
DEPENDENCY_REMOVED = "Dependency removed."
TASK_MOVED = "Moved."
TASK_DETACHED = "Now a top-level task."
NOTHING_SELECTED = "Open a task first."
TASK_DUPLICATED = "Copy added."
TASK_SHIFTED = "Moved up."
ESTIMATE_USAGE = "Usage: /estimate <minutes>, or /estimate auto to use the subtask total."
ESTIMATE_SET = "Estimate saved."
ESTIMATE_CLEARED = "Estimate now follows the subtasks."
