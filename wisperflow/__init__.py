"""
WisperFlow - Push-to-Talk Voice Dictation

Hold a hotkey, speak, release: the audio is transcribed by a hosted
speech-to-text provider, tidied up by an LLM, and pasted at the cursor.
"""

__version__ = "0.1.0"

from wisperflow.app import DictationApp
from wisperflow.config import Config
from wisperflow.controller import DictationController

__all__ = ["DictationApp", "DictationController", "Config", "__version__"]
