"""Pomoflow - focused-work sessions built from pomodoro cycles."""

__version__ = "0.1.0"
