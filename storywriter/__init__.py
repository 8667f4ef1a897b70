"""Story Writer: turns a failure report into analysis, bug report, user story and severity."""

__version__ = "1.0.0"
