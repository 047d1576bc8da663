"""Re-evaluation of the BoardGameGeek ranking without overhyped raters."""

__version__ = "0.1.0"
