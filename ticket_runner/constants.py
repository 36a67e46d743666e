"""Default locations and timing constants shared across the runner."""

DEFAULT_AGENT = "claude"

DEFAULT_ISSUES_FILE = ".ticket-runner/issues.txt"
DEFAULT_PROMPT_TEMPLATE = ".ticket-runner/prompt.tmpl"
DEFAULT_CONFIG_FILE = ".ticket-runner/config.yaml"
DEFAULT_LOG_DIR = ".ticket-runs"
DONE_FILE_NAME = ".completed"

DEFAULT_GH_BIN = "gh"

# Seconds
FALLBACK_WAIT_SECONDS = 1800
DEFAULT_WAIT_BUFFER_SECONDS = 120
COUNTDOWN_INTERVAL_SECONDS = 300
