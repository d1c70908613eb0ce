"""Engines - grading, mastery, and prompt-selection logic."""
