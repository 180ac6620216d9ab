"""SehriMilan: Ramadan meal plans and shopping lists from AI-generated Markdown."""

__version__ = "0.3.0"
