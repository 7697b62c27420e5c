"""samples.py — Content sample library for synthesized chat completions.

Holds the static pools of markdown / html / json / plain-text bodies that
the mock chat endpoint answers with, plus the content-type classifier that
picks a pool from the latest message in a conversation.

Both the non-streaming handler and the streaming emulator classify through
``detect_content_type()`` so equivalent input selects the same sample family
on either path.

Called by: factory.py, core/streaming.py
Depends on: Nothing (the RNG is passed in by the caller)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from faker import Faker

# ─── Content Types ────────────────────────────────────────────────────────────

CONTENT_MARKDOWN = "markdown"
CONTENT_HTML = "html"
CONTENT_JSON = "json"
CONTENT_TEXT = "text"

# ─── Sample Pools ─────────────────────────────────────────────────────────────
# Every sample is shorter than the streaming safety cap (500 chunks), so a
# stream always finishes on its own before the cap is reached.

CONTENT_SAMPLES: dict[str, tuple[str, ...]] = {
    CONTENT_MARKDOWN: (
        "# Markdown Example\n\n"
        "- Checklist\n"
        "- [x] Finished item\n"
        "- [ ] Open item\n\n"
        "```javascript\nconst code = 'example';\nconsole.log('Hello World');\n```\n\n"
        "**Bold text** and *italics* are supported too.",
        "## Table Example\n\n"
        "| Name | Age | Role |\n"
        "|------|-----|------|\n"
        "| Alice | 30 | Developer |\n"
        "| Bob | 28 | Designer |\n"
        "| Carol | 35 | Planner |\n\n"
        "> Blockquotes are supported as well.",
        "### Todo List\n\n"
        "1. [x] Project setup\n"
        "2. [ ] Build the UI\n"
        "3. [ ] Write tests\n"
        "4. [ ] Prepare release\n\n"
        "---\n\n"
        "```python\ndef hello():\n    return \"Hello, World!\"\n```",
    ),
    CONTENT_HTML: (
        "<div><h3>HTML Example</h3>"
        "<button style='padding:8px 16px; background:#007bff; color:white; border:none; "
        "border-radius:4px; cursor:pointer;'>Click me</button><br><br>"
        "<ul><li>Item 1</li><li>Item 2</li></ul>"
        "<p><strong>Bold text</strong> and <em>italics</em></p></div>",
        "<form style='border:1px solid #ddd; padding:16px; border-radius:8px;'>"
        "<h4>User details</h4>"
        "<label>Name: <input type='text' placeholder='Your name' style='margin-left:8px;'></label><br><br>"
        "<label>Email: <input type='email' placeholder='email@example.com' style='margin-left:8px;'></label>"
        "<br><br><button type='submit' style='background:#28a745; color:white; border:none; "
        "padding:8px 16px;'>Send</button></form>",
        "<div class='notice' style='background:#f8f9fa; padding:16px; border-left:4px solid #007bff;'>"
        "<h4 style='margin:0 0 8px 0; color:#007bff;'>Notice</h4>"
        "<p style='margin:0;'>This is a styled HTML notice box.</p>"
        "<ul style='margin:8px 0 0 0;'><li>Entry A</li><li>Entry B</li></ul></div>",
    ),
    CONTENT_JSON: (
        '{\n  "user": {\n    "name": "Alice",\n    "age": 30,\n'
        '    "skills": ["React", "TypeScript", "Node.js"],\n    "isActive": true\n  },\n'
        '  "timestamp": "2024-01-15T09:30:00Z",\n  "status": "success"\n}',
        '{\n  "products": [\n    {\n      "id": 1,\n      "name": "Laptop",\n'
        '      "price": 1200,\n      "category": "Electronics"\n    },\n'
        '    {\n      "id": 2,\n      "name": "Mouse",\n      "price": 50,\n'
        '      "category": "Accessories"\n    }\n  ],\n  "total": 1250,\n  "currency": "USD"\n}',
        '{\n  "response": {\n    "data": {\n      "users": [\n'
        '        {"id": 1, "name": "Alice", "role": "admin"},\n'
        '        {"id": 2, "name": "Bob", "role": "user"}\n      ]\n    },\n'
        '    "meta": {\n      "page": 1,\n      "limit": 10,\n      "total": 2\n    }\n  }\n}',
    ),
    CONTENT_TEXT: (
        "Hello! This is a plain text response. It contains no markdown or HTML "
        "tags, only an ordinary message.",
        "This is an ordinary conversational reply, written as plain text for a "
        "natural back-and-forth with the user.",
        "A general text answer from the assistant. Information is delivered in "
        "an easy-to-read form without any special formatting.",
    ),
}


# ─── Classification ───────────────────────────────────────────────────────────


def message_text(message: Any) -> str:
    """Extract the plain text of a chat message.

    String content is returned as-is. Multimodal content (a list of parts)
    contributes the ``text`` of each text part. Anything else is empty.
    """
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return " ".join(parts)
    return ""


def detect_content_type(messages: Sequence[Any] | None) -> str:
    """Classify the reply format requested by the latest message.

    Case-insensitive substring checks, first hit wins:
    "markdown" or "md" → markdown, "html" → html, "json" → json, else text.

    Args:
        messages: The request's ``messages`` list (may be empty or None).

    Returns:
        One of the ``CONTENT_*`` constants.
    """
    latest = message_text(messages[-1]).lower() if messages else ""

    if "markdown" in latest or "md" in latest:
        return CONTENT_MARKDOWN
    if "html" in latest:
        return CONTENT_HTML
    if "json" in latest:
        return CONTENT_JSON
    return CONTENT_TEXT


def get_content_sample(content_type: str, rng: Faker) -> str:
    """Pick one sample body of the given type using the session RNG.

    Unknown content types fall back to the text pool.
    """
    samples = CONTENT_SAMPLES.get(content_type, CONTENT_SAMPLES[CONTENT_TEXT])
    return rng.random_element(samples)
