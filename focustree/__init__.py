"""FocusTree core library: subtask trees, completion propagation, focus sessions.

Public API re-exports for convenient imports:
    from focustree import toggle, flatten_leaves, FocusSession, ...
"""

# Workspace & paths
from focustree.workspace import (
    workspace_root,
    now_iso,
    generate_id,
    tasks_path,
    settings_path,
    hooks_config_path,
    log_dir,
)

# Settings
from focustree.config import Settings, load_settings

# Models
from focustree.models import (
    Subtask,
    Task,
    TasksFile,
    CompletionRecord,
    FocusState,
)

# Path addressing
from focustree.paths import (
    parse_path,
    format_path,
    resolve,
    set_completed,
    flatten_leaves,
    leaf_paths,
    find_path,
    find_path_by_title,
)

# Completion propagation
from focustree.completion import (
    is_fully_complete,
    are_all_subtasks_complete,
    toggle,
    complete_task,
    toggle_task_completed,
    completion_ratio,
)

# Storage & sync
from focustree.repository import TaskRepository
from focustree.sync import RemoteSync

# Focus sessions
from focustree.focus import FocusSession

# Task operations
from focustree.tasks import (
    validate_task,
    create_task,
    update_task,
    delete_task,
    toggle_task_complete,
    filter_tasks,
    toggle_subtask,
    open_focus_session,
)

# Hooks
from focustree.hooks import run_hooks, event_runner
