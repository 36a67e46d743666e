"""ticket-runner - drive a coding-agent CLI through a queue of GitHub issues.

The runner invokes one agent per issue, watches the repository for the
resulting commit, and waits out provider usage limits before retrying.
"""

__version__ = "0.1.0"

__all__ = [
    "agents",
    "cli",
    "completion_store",
    "config",
    "git_utils",
    "github_api",
    "invoker",
    "processor",
    "runner",
]
