"""ccboard: live state engine for a Claude Code orchestration dashboard."""
