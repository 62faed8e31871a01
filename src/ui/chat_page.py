"""NiceGUI chat page for the Socratic math tutor."""

import logging

from nicegui import events, ui

from src.agent.chat_agent import TutorService
from src.errors import SessionInitError, UnsupportedAttachmentError
from src.media.attachments import SUPPORTED_IMAGE_TYPES, load_attachment, to_data_url
from src.models.schemas import Attachment, Message, Role
from src.ui.state import ChatState

logger = logging.getLogger(__name__)

CUSTOM_CSS = """
<link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600&display=swap"
      rel="stylesheet">
<style>
    * { font-family: 'Inter', sans-serif; }

    body { background: #f8fafc; min-height: 100vh; }

    .app-container {
        background: white;
        border-radius: 12px;
        box-shadow: 0 2px 8px rgba(0, 0, 0, 0.1);
        overflow: hidden;
    }

    .header { background: white; border-bottom: 1px solid #e2e8f0; }

    .message-user {
        background: #059669;
        color: white;
        border-radius: 18px 18px 4px 18px;
    }

    .message-assistant {
        background: #f1f5f9;
        color: #1e293b;
        border-radius: 18px 18px 18px 4px;
    }

    .avatar-user { background: #059669; }
    .avatar-assistant { background: #475569; }

    .typing-dot {
        width: 8px; height: 8px;
        background: #059669;
        border-radius: 50%;
        animation: bounce 1.4s infinite ease-in-out;
    }
    .typing-dot:nth-child(2) { animation-delay: 0.2s; }
    .typing-dot:nth-child(3) { animation-delay: 0.4s; }

    @keyframes bounce {
        0%, 60%, 100% { transform: translateY(0); }
        30% { transform: translateY(-6px); }
    }

    .input-box {
        background: #f9fafb;
        border: 1px solid #e5e7eb;
        border-radius: 12px;
        transition: border-color 0.2s;
    }
    .input-box:focus-within { border-color: #059669; }

    .message-assistant .nicegui-markdown p { margin: 0.25rem 0; }
</style>
"""

ACCEPTED_TYPES = ",".join(sorted(SUPPORTED_IMAGE_TYPES))

# Plain Enter only; Shift+Enter keeps the textarea newline
SEND_KEY_EVENT = "keydown.enter.exact.prevent"


@ui.page("/")
def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)

    messages_container: ui.column
    scroll_area: ui.scroll_area
    input_field: ui.textarea
    send_btn: ui.button
    upload: ui.upload
    preview_row: ui.row
    attachment: Attachment | None = None

    def render_avatar(is_user: bool) -> None:
        css = "avatar-user" if is_user else "avatar-assistant"
        icon = "person" if is_user else "calculate"
        avatar_classes = f"w-9 h-9 rounded-full flex items-center justify-center {css}"
        with ui.element("div").classes(avatar_classes):
            ui.icon(icon).classes("text-white text-lg")

    def render_thinking() -> None:
        with ui.row().classes("items-center gap-2"):
            with ui.row().classes("gap-1"):
                for _ in range(3):
                    ui.element("div").classes("typing-dot")
            ui.label("Thinking...").classes("text-sm text-gray-500 italic")

    def render_message(msg: Message) -> None:
        is_user = msg.role == Role.USER
        align = "justify-end" if is_user else "justify-start"
        bubble = "message-user" if is_user else "message-assistant"

        with ui.row().classes(f"w-full {align} gap-3 items-end"):
            if not is_user:
                render_avatar(False)
            with ui.column().classes("max-w-[75%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if msg.attachment is not None:
                        ui.image(to_data_url(msg.attachment)).classes("w-56 rounded-lg mb-2")
                    if msg.pending:
                        render_thinking()
                    elif is_user:
                        ui.label(msg.text).classes("text-sm whitespace-pre-wrap")
                    else:
                        ui.markdown(msg.text).classes("text-sm leading-relaxed")
                ui.label(msg.created_at.strftime("%I:%M %p")).classes(
                    f"text-[10px] text-gray-400 {'self-end' if is_user else 'self-start'}"
                )
            if is_user:
                render_avatar(True)

    def refresh_messages() -> None:
        messages_container.clear()
        with messages_container:
            for msg in state.messages:
                render_message(msg)
        send_btn.set_enabled(not state.is_loading)
        scroll_area.scroll_to(percent=1.0)

    def refresh_preview() -> None:
        preview_row.clear()
        with preview_row:
            if attachment is not None:
                ui.image(to_data_url(attachment)).classes("w-16 h-16 rounded-lg")
                ui.button(icon="close", on_click=clear_attachment).props("flat round dense")

    def clear_attachment() -> None:
        nonlocal attachment
        attachment = None
        upload.reset()
        refresh_preview()

    async def handle_upload(e: events.UploadEventArguments) -> None:
        nonlocal attachment
        data = await e.file.read()
        try:
            attachment = load_attachment(data, e.file.content_type)
        except UnsupportedAttachmentError as err:
            logger.warning(f"Rejected attachment {e.file.name}: {err}")
            ui.notify(str(err), type="warning")
            upload.reset()
            return
        refresh_preview()

    async def send_message() -> None:
        nonlocal attachment
        text = input_field.value or ""
        if state.is_loading or (not text.strip() and attachment is None):
            return

        outgoing = attachment
        input_field.value = ""
        attachment = None
        upload.reset()
        refresh_preview()

        await state.submit(text, outgoing)

    async def new_chat() -> None:
        if not await confirm_dialog:
            return
        try:
            state.reset()
        except SessionInitError as e:
            logger.error(f"Session reset failed: {e}")
            ui.notify("Could not start a new session. It will be retried on your next message.",
                      type="negative")

    service = TutorService()
    state = ChatState(service, on_change=lambda: refresh_messages())

    with ui.dialog() as confirm_dialog, ui.card():
        ui.label("Start a new session? Current history will be cleared.")
        with ui.row().classes("w-full justify-end"):
            ui.button("Cancel", on_click=lambda: confirm_dialog.submit(False)).props("flat")
            ui.button("Clear chat", on_click=lambda: confirm_dialog.submit(True)).props(
                "color=negative"
            )

    # === UI Layout ===
    with (
        ui.element("div").classes("w-full min-h-screen p-4 md:p-8"),
        ui.column().classes("w-full max-w-3xl mx-auto app-container").style(
            "height: calc(100vh - 4rem)"
        ),
    ):
        # Header
        with ui.row().classes("w-full header px-5 py-4 items-center justify-between"):
            with ui.row().classes("items-center gap-3"):
                ui.icon("calculate").classes("text-emerald-600 text-3xl")
                with ui.column().classes("gap-0"):
                    ui.label("Socratic Math Tutor").classes("text-lg font-semibold")
                    ui.label("Thinking Model Active").classes("text-xs text-emerald-600")
            ui.button("Clear Chat", icon="delete_sweep", on_click=new_chat).props("flat")

        # Messages
        with ui.scroll_area().classes("flex-grow w-full bg-gray-50") as scroll_area:
            with ui.column().classes("w-full p-5"):
                messages_container = ui.column().classes("w-full gap-4")

        # Input
        with ui.column().classes("w-full p-4 gap-2 bg-white border-t"):
            preview_row = ui.row().classes("items-center gap-2")
            with ui.row().classes("w-full gap-3 items-end"):
                upload = (
                    ui.upload(on_upload=handle_upload, auto_upload=True, max_files=1)
                    .props(f'accept="{ACCEPTED_TYPES}" flat')
                    .classes("w-40")
                )
                with ui.element("div").classes("flex-grow input-box px-3 py-2"):
                    input_field = (
                        ui.textarea(placeholder="Type a math problem or upload an image...")
                        .props("autogrow borderless dense rows=1")
                        .classes("w-full")
                        .on(SEND_KEY_EVENT, send_message)
                    )
                send_btn = ui.button(icon="send", on_click=send_message).props(
                    "round unelevated color=positive"
                )

    state.start()


def main() -> None:
    ui.run(title="Socratic Math Tutor", port=8080, reload=False)


if __name__ == "__main__":
    main()
