"""
User-facing message catalog (English and Arabic).

Only the occurrence and category of a notification are contractual; the
wording here is presentation.
"""

from typing import Optional

from src.core.errors import ErrorKind

SUPPORTED_LANGUAGES = {
    "en": "English",
    "ar": "Arabic",
}

RTL_LANGUAGES = {"ar"}

DEFAULT_LANGUAGE = "en"


MESSAGES = {
    "en": {
        # Successes
        "generate.success": "Image generated successfully!",
        "save.success": "Saved to history",
        "delete.success": "Image deleted",
        "download.success": "Image downloaded!",
        "upload.success": "Reference image attached",
        # Failures by kind
        ErrorKind.EMPTY_PROMPT.value: "Please enter a prompt",
        ErrorKind.INVALID_FILE_TYPE.value: "Please choose an image file",
        ErrorKind.FILE_TOO_LARGE.value: "The image is too large",
        ErrorKind.REQUEST_REJECTED.value: "Failed to generate image",
        ErrorKind.TRANSPORT_ERROR.value: "Something went wrong. Please try again.",
        ErrorKind.NO_IMAGE_RETURNED.value: "No image was returned. Please try again.",
        ErrorKind.DOWNLOAD_FAILED.value: "Failed to download image",
        # Persistence failures are worded per operation
        "save.persistence-failed": "The image could not be saved to history",
        "delete.persistence-failed": "Failed to delete image",
        "history.persistence-failed": "Failed to load history",
    },
    "ar": {
        "generate.success": "تم إنشاء الصورة بنجاح!",
        "save.success": "تم الحفظ في السجل",
        "delete.success": "تم حذف الصورة",
        "download.success": "تم تحميل الصورة!",
        "upload.success": "تم إرفاق الصورة المرجعية",
        ErrorKind.EMPTY_PROMPT.value: "الرجاء إدخال وصف للصورة",
        ErrorKind.INVALID_FILE_TYPE.value: "الرجاء اختيار ملف صورة",
        ErrorKind.FILE_TOO_LARGE.value: "حجم الصورة كبير جداً",
        ErrorKind.REQUEST_REJECTED.value: "فشل في إنشاء الصورة",
        ErrorKind.TRANSPORT_ERROR.value: "حدث خطأ غير متوقع. حاول مرة أخرى.",
        ErrorKind.NO_IMAGE_RETURNED.value: "لم يتم إرجاع أي صورة. حاول مرة أخرى.",
        ErrorKind.DOWNLOAD_FAILED.value: "فشل في تحميل الصورة",
        "save.persistence-failed": "تعذر حفظ الصورة في السجل",
        "delete.persistence-failed": "فشل في حذف الصورة",
        "history.persistence-failed": "فشل في تحميل السجل",
    },
}


def normalize_language(language: Optional[str]) -> str:
    """Map a language code or name to a supported code, defaulting to English."""
    if not language:
        return DEFAULT_LANGUAGE
    key = language.strip().lower()
    if key in SUPPORTED_LANGUAGES:
        return key
    name_to_code = {v.lower(): k for k, v in SUPPORTED_LANGUAGES.items()}
    return name_to_code.get(key, DEFAULT_LANGUAGE)


def is_rtl(language: str) -> bool:
    return normalize_language(language) in RTL_LANGUAGES


def translate(key: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Look up a message, falling back to English and then to the key itself."""
    catalog = MESSAGES[normalize_language(language)]
    if key in catalog:
        return catalog[key]
    return MESSAGES[DEFAULT_LANGUAGE].get(key, key)


def message_for(event: str, kind: Optional[ErrorKind], language: str = DEFAULT_LANGUAGE) -> str:
    """Resolve the message for a notification event and optional failure kind."""
    if kind is None:
        return translate(f"{event}.success", language)
    specific = f"{event}.{kind.value}"
    if specific in MESSAGES[DEFAULT_LANGUAGE]:
        return translate(specific, language)
    return translate(kind.value, language)
