"""
User-facing fuzzy search messages.

Keyed by reply language. Japanese mirrors the wording the assistant has
always used with its Japanese-speaking users.
"""

MESSAGES = {
    "en": {
        "usage": "Please specify a search term. Example: {prefix}: progress report",
        "failure": "Sorry, something went wrong!",
        "no_results": "No messages were found for your search.",
        "no_relevant": "Messages were found, but none looked relevant to your search.",
        "queries": "Searching with: {queries}",
        "link": "link",
    },
    "ja": {
        "usage": "検索ワードを指定してください。例: {prefix}: 進捗報告",
        "failure": "Sorry, something went wrong!",
        "no_results": "該当するメッセージが見つかりませんでした。",
        "no_relevant": "関連するメッセージが見つかりませんでした。",
        "queries": "キーワード: {queries}",
        "link": "リンク",
    },
}

SUPPORTED_LANGUAGES = tuple(MESSAGES)


def get_message(key: str, language: str = "en", **kwargs) -> str:
    """Look up a message, falling back to English."""
    catalogue = MESSAGES.get(language, MESSAGES["en"])
    template = catalogue.get(key, MESSAGES["en"][key])
    return template.format(**kwargs) if kwargs else template
