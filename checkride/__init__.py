"""Checkride Oral Examiner - adaptive oral exam sessions graded by an LLM."""
