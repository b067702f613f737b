"""Canned user-facing texts."""

from __future__ import annotations

from datetime import datetime

from lineassist.webhook.intents import file_kind_label
from lineassist.webhook.models import FileKind

HELP_TEXT = (
    "🤖 Hi! Here is what I can do:\n\n"
    "📎 File analysis: send an image, PDF, audio or video, then tell me what you want done with it\n\n"
    "💬 General chat: ask me anything\n\n"
    "🔍 Commands: help, status\n\n"
    "✨ Examples:\n"
    '"analyze this picture"\n'
    '"translate the text in the image"\n'
    '"summarize the PDF"\n'
    '"transcribe the audio"'
)

CHAT_FAILED = "Sorry, something went wrong while processing your message. Please try again 🙏"
UNSUPPORTED_MESSAGE = (
    "Sorry, this message type is not supported yet. "
    "Please send text or a file (image, audio, video, PDF)."
)
EVENT_FAILED = "An error occurred while processing your message. Please try again."
NO_OWNER = "Sorry, I can only work with files sent in a chat I can reply to directly."

NO_PENDING_FILE = "🤔 There is no file waiting to be processed. Please send the file again."
FILE_EXPIRED = "⏰ That file has expired. Please send it again."
PROCESSING = "⚙️ Working on your file as requested, please wait a moment..."
PROCESSING_FAILED = (
    "❌ Sorry, I could not process the file.\n\n"
    "🔍 Possible causes:\n"
    "• The file is damaged\n"
    "• The file type is not supported\n"
    "• The file is too large\n\n"
    "💡 Try sending the file again."
)


def status_text(uptime_minutes: int, now: datetime) -> str:
    return (
        "✅ System status\n"
        "🚀 Server: running\n"
        "🤖 AI: ready\n"
        f"⏱️ Uptime: {uptime_minutes} min\n"
        f"📊 Updated: {now.strftime('%Y-%m-%d %H:%M:%S')}\n\n"
        "💡 Send me a file or a message!"
    )


def file_prompt(kind: FileKind) -> str:
    return (
        f"📎 Got your {file_kind_label(kind)}!\n\n"
        "🤔 What would you like me to do with it?\n\n"
        "📋 For example:\n"
        "• Analyze the content\n"
        "• Summarize the key points\n"
        "• Translate the text\n"
        "• Explain the details\n"
        "• Answer a question about the file\n\n"
        '💬 Just tell me, or type "analyze" for a general analysis.'
    )


def file_answer(answer: str) -> str:
    return f"✨ {answer}\n\n🔄 Send the file again if you want a different kind of analysis."
