"""
Locale preference persistence.

Small JSON file holding the user's chosen UI language. Read at session
start, written on explicit user choice. Orthogonal to conversational
state: the controller never reads it.
"""

import json
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ('si', 'en', 'ta')
DEFAULT_LANGUAGE = 'si'


class LocalePreferenceStore:
    """
    Manages the persisted language preference.

    Layout:
        <path>  ->  {"language": "en"}

    Design:
    - Missing, unreadable or invalid files fall back to DEFAULT_LANGUAGE
    - Saving validates against SUPPORTED_LANGUAGES
    - Writes go through a temp file and rename
    """

    def __init__(self, path: Union[str, Path]):
        """
        Initialize store.

        Args:
            path: Location of the preference file (parent created on save)
        """
        self.path = Path(path)
        logger.info(f"LocalePreferenceStore initialized: {self.path}")

    def load(self) -> str:
        """
        Read the stored language.

        Returns:
            str: Stored language, or DEFAULT_LANGUAGE if none is usable
        """
        if not self.path.exists():
            return DEFAULT_LANGUAGE

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading language preference from {self.path}: {e}")
            return DEFAULT_LANGUAGE

        language = data.get('language') if isinstance(data, dict) else None
        if language not in SUPPORTED_LANGUAGES:
            logger.warning(f"Ignoring unsupported stored language: {language!r}")
            return DEFAULT_LANGUAGE

        return language

    def save(self, language: str) -> str:
        """
        Persist a language choice.

        Args:
            language: One of SUPPORTED_LANGUAGES

        Returns:
            str: The saved language

        Raises:
            ValueError: If language is not supported
        """
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(
                f"Unsupported language {language!r}; expected one of {SUPPORTED_LANGUAGES}"
            )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')

        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump({'language': language}, f, ensure_ascii=False)
        tmp_path.replace(self.path)

        logger.info(f"Language preference saved: {language}")
        return language
