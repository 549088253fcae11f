# note_poster/pipeline/messages.py
"""Progress messages and remediation suggestions shown to the user."""

from note_poster.models import ProgressStep
from note_poster.providers.errors import ErrorKind, GenerationError

_PROGRESS_MESSAGES: dict[str, dict[str, str]] = {
    "analyzing": {
        "en": "Analyzing note...",
        "ko": "노트 분석 중...",
        "ja": "ノートを分析中...",
        "zh": "正在分析笔记...",
        "es": "Analizando nota...",
        "fr": "Analyse de la note...",
        "de": "Notiz wird analysiert...",
    },
    "generating-prompt": {
        "en": "Generating prompt...",
        "ko": "프롬프트 생성 중...",
        "ja": "プロンプトを生成中...",
        "zh": "正在生成提示...",
        "es": "Generando prompt...",
        "fr": "Génération du prompt...",
        "de": "Prompt wird generiert...",
    },
    "generating-image": {
        "en": "Generating image...",
        "ko": "이미지 생성 중...",
        "ja": "画像を生成中...",
        "zh": "正在生成图像...",
        "es": "Generando imagen...",
        "fr": "Génération de l'image...",
        "de": "Bild wird generiert...",
    },
    "saving": {
        "en": "Saving file...",
        "ko": "파일 저장 중...",
        "ja": "ファイルを保存中...",
        "zh": "正在保存文件...",
        "es": "Guardando archivo...",
        "fr": "Sauvegarde du fichier...",
        "de": "Datei wird gespeichert...",
    },
    "embedding": {
        "en": "Embedding in note...",
        "ko": "노트에 삽입 중...",
        "ja": "ノートに挿入中...",
        "zh": "正在嵌入笔记...",
        "es": "Insertando en nota...",
        "fr": "Insertion dans la note...",
        "de": "In Notiz einbetten...",
    },
    "complete": {
        "en": "Complete!",
        "ko": "완료!",
        "ja": "完了！",
        "zh": "完成！",
        "es": "¡Completado!",
        "fr": "Terminé !",
        "de": "Fertig!",
    },
}

_SUGGESTIONS: dict[ErrorKind, list[str]] = {
    ErrorKind.INVALID_API_KEY: [
        "Check that the API key is entered correctly in the config",
        "Verify the key in the provider's console",
        "Make sure the key is activated and billing is enabled",
    ],
    ErrorKind.RATE_LIMIT: [
        "Wait a moment and try again",
        "Check your API quota",
    ],
    ErrorKind.NETWORK_ERROR: [
        "Check your internet connection",
        "If you use a VPN or proxy, check its settings",
    ],
    ErrorKind.GENERATION_FAILED: [
        "Try a different image style",
        "Simplify or shorten the note content",
    ],
    ErrorKind.CONTENT_FILTERED: [
        "Simplify or shorten the note content",
        "The content may contain sensitive material",
    ],
    ErrorKind.NO_CONTENT: [
        "Add more content to the note",
    ],
}


def progress_message(step: ProgressStep | str, language: str = "en") -> str:
    """Localized message for ``step``, falling back to English, then the step name."""
    key = step.value if isinstance(step, ProgressStep) else step
    by_language = _PROGRESS_MESSAGES.get(key, {})
    return by_language.get(language) or by_language.get("en") or key


def error_suggestions(error: GenerationError) -> list[str]:
    """Remediation hints keyed by error kind."""
    return list(_SUGGESTIONS.get(error.kind, []))
