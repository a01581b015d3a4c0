"""Audio extraction — provider-side transcription.

Extension and size are checked before any upload. The provider transcribes
the recording, groups the transcript into topical chunks and summarizes it.
"""

from __future__ import annotations

from notespace.db.models import SourceKind
from notespace.ingest.base import AUDIO_TYPES, ProviderFileExtractor

_AUDIO_PROMPT = """\
Transcribe this audio recording accurately.
Group the transcript into chunks of roughly {min_words}-{max_words} words, \
each covering one topic of the conversation, and return one string per chunk \
in "text". Put a brief overview of the recording in "summary"."""


class AudioExtractor(ProviderFileExtractor):
    kind = SourceKind.AUDIO
    accepted_types = AUDIO_TYPES
    label = "audio"
    prompt_template = _AUDIO_PROMPT
