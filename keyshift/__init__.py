"""
KeyShift - transpose audio files from one musical key to another.

Drives three external tools (a format converter, a key detector and a pitch
stretcher) and computes the semitone shift between two keys.
"""

__version__ = "0.1.0"
