"""
Google Translate backend using the free translate_a/single endpoint.
"""

from epub2zh.config import GOOGLE_TRANSLATE_URL, GOOGLE_MAX_LENGTH, GOOGLE_GET_LIMIT, TARGET_LANGUAGE_CODE
from epub2zh.core.adapters.exceptions import BackendError, BackendErrorKind
from .base import TranslationBackend


class GoogleTranslateBackend(TranslationBackend):
    """General-purpose translation API (no key required)"""

    name = "google"

    USER_AGENT = (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) '
        'AppleWebKit/537.36 (KHTML, like Gecko) Chrome/111.0.0.0 Safari/537.36'
    )

    def __init__(
        self,
        endpoint: str = GOOGLE_TRANSLATE_URL,
        source_lang: str = 'auto',
        target_lang: str = TARGET_LANGUAGE_CODE,
        max_length: int = GOOGLE_MAX_LENGTH,
        **kwargs
    ):
        super().__init__(max_length=max_length, **kwargs)
        self.endpoint = endpoint
        self.source_lang = source_lang
        self.target_lang = target_lang

    async def _translate_piece(self, text: str) -> str:
        params = {
            'client': 'gtx',
            'sl': self.source_lang,
            'tl': self.target_lang,
            'dt': 't',
            'dj': '1',
            'q': text,
        }
        headers = {'User-Agent': self.USER_AGENT}

        if len(text) <= GOOGLE_GET_LIMIT:
            response = await self._send("GET", self.endpoint, params=params, headers=headers)
        else:
            response = await self._send("POST", self.endpoint, data=params, headers=headers)

        data = self._parse_json(response)
        sentences = data.get('sentences') if isinstance(data, dict) else None
        if not isinstance(sentences, list):
            raise BackendError(
                "google response has no sentences",
                kind=BackendErrorKind.MALFORMED_RESPONSE,
                backend=self.name
            )

        translated = ''.join(s.get('trans', '') for s in sentences if isinstance(s, dict))
        if not translated.strip():
            raise BackendError(
                "google returned an empty translation",
                kind=BackendErrorKind.MALFORMED_RESPONSE,
                backend=self.name
            )
        return translated
