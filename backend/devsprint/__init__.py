"""DevSprint: task and sprint tracking for small development teams."""

__version__ = "1.0.0"
