"""evomind: spaced-repetition review scheduling for the EvoMind learning app."""

from evomind.consts import VERSION

__version__ = VERSION
