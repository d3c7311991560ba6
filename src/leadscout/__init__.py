"""Lead Scout.

Finds local businesses without a website, lets a user save them as leads,
annotate and score them, group them into projects, and export the result.
"""

__version__ = "0.1.0"
