# note.com automation configuration (Playwright variant)

# Editor entry point and browser defaults
NOTE_START_URL = "https://editor.note.com/new"
BROWSER_LOCALE = "ja-JP"
BROWSER_ARGS = ("--lang=ja-JP",)
CHROME_EXECUTABLE_PATH = None  # e.g. r"C:\Program Files\Google\Chrome\Application\chrome.exe"

DEFAULT_NOTE_TITLE = "タイトル（自動生成）"

# Timing (seconds) for bounded waits and polls
WAIT_FIELD = 7.0
WAIT_FIELD_BUDGET = 60.0
WAIT_NESTED_FIELD = 3.0
WAIT_BODY = 30.0
ENABLE_POLL_ATTEMPTS = 20
ENABLE_POLL_INTERVAL = 0.1
PASTE_SETTLE = 0.2
INSERT_SETTLE = 0.1
WAIT_DRAFT_CONFIRM = 4.0
WAIT_PUBLISH_SURFACE = 30.0
TAG_PACE = 0.12
WAIT_PUBLISHED_URL = 20.0
WAIT_PUBLISHED_TEXT = 8.0
PUBLISH_SETTLE = 5.0
PAGE_DEFAULT_TIMEOUT = 180.0

# Hosts whose bare URLs note.com turns into embed cards
EMBED_DOMAINS = (
    "openai.com",
    "youtube.com",
    "youtu.be",
    "x.com",
    "twitter.com",
    "speakerdeck.com",
    "slideshare.net",
    "google.com",
    "maps.app.goo.gl",
    "gist.github.com",
)

# Field purposes: keywords matched against placeholder / aria-label
TITLE_KEYWORDS = ("タイトル", "title")
TITLE_TEST_HOOK = "title"

# Selectors and UI texts (note.com editor, Japanese UI)
SEL_NOTE = {
    "body": 'div[contenteditable="true"][role="textbox"]',
    "save_draft": 'button:has-text("下書き保存"), [aria-label*="下書き保存"]',
    "draft_saved": "text=保存しました",
    "proceed_publish": 'button:has-text("公開に進む")',
    "publish_btn": 'button:has-text("投稿する")',
    "published": "text=投稿しました",
    "tags_input": (
        'input[placeholder*="ハッシュタグ"]',
        'input[role="combobox"]',
    ),
}
PUBLISH_REVIEW_URL_RE = r"/publish"

# Diagnostics artifacts
SCREENSHOT_TMP_DIRNAME = "note-screenshots"
SCREENSHOT_PREFIX = "note-post"
TRACE_FILENAME = "trace.zip"
HAR_FILENAME = "network.har"
PAGE_HTML_SNIPPET_CHARS = 2000
# 1x1 PNG written when a live screenshot cannot be taken
PLACEHOLDER_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGMAAQAABQABDQottAAAAABJRU5ErkJggg=="
)
