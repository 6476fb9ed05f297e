"""Builders for the interactive message cards the bot sends.

Cards are plain dicts following the Lark message card JSON schema; the
messenger serialises them when sending or patching.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from models.session_models import AI_MODE_NAMES, PicResolution, PicStyle, VisionDetail

Card = Dict[str, Any]
Element = Dict[str, Any]


class CardKind(str, Enum):
    CLEAR = "clear"
    PIC_MODE_CHANGE = "pic_mode_change"
    VISION_MODE_CHANGE = "vision_mode"
    PIC_RESOLUTION = "pic_resolution"
    PIC_STYLE = "pic_style"
    VISION_STYLE = "vision_style"
    PIC_TEXT_MORE = "pic_text_more"
    PIC_VAR_MORE = "pic_var_more"
    ROLE_TAGS_CHOOSE = "role_tags_choose"
    ROLE_CHOOSE = "role_choose"
    AI_MODE_CHOOSE = "ai_mode_choose"


# Value carried by the confirm / cancel buttons of double-check cards.
CONFIRM = "1"
CANCEL = "0"
USER_CHAT_TYPE = "personal"

NEW_TOPIC_TITLE = "👻️ Started New Topic"
OLD_TOPIC_TITLE = "🔃️ Contextual Topic"
TOPIC_REMINDER = "Reminder: Click the dialogue box to reply and maintain topic continuity"
FRESH_START_NOTE = (
    "Please note, this will start a brand new conversation and you won't be able to "
    "use historical information from previous topics"
)
KEEP_CONTEXT_NOTE = (
    "We can continue discussing this topic, looking forward to chatting with you. "
    "If you have other questions or topics you'd like to discuss, please let me know"
)

PROCESSING_NOTE = "Thinking, please wait..."
GENERATING_NOTE = "Generating, please wait..."
COMPLETED_NOTE = "Completed, you can continue asking questions or choose other functions."
TIMEOUT_TEXT = "Request timeout"
FAILURE_TEXT = "Chat failed"


# -- elements -------------------------------------------------------------

def header(title: str, template: str = "blue") -> Dict[str, Any]:
    return {
        "template": template,
        "title": {"tag": "plain_text", "content": title or "🤖️ Bot Reminder"},
    }


def markdown(content: str) -> Element:
    return {
        "tag": "div",
        "fields": [{"is_short": True, "text": {"tag": "lark_md", "content": content.strip()}}],
    }


def plain_text(content: str) -> Element:
    return {
        "tag": "div",
        "fields": [{"is_short": False, "text": {"tag": "plain_text", "content": content.strip()}}],
    }


def note(content: str) -> Element:
    return {"tag": "note", "elements": [{"tag": "plain_text", "content": content}]}


def split_line() -> Element:
    return {"tag": "hr"}


def image(image_key: str) -> Element:
    return {
        "tag": "img",
        "img_key": image_key,
        "alt": {"tag": "plain_text", "content": ""},
        "mode": "crop_center",
        "preview": True,
        "compact_width": True,
    }


def button(text: str, value: Dict[str, Any], style: str = "default") -> Element:
    return {
        "tag": "button",
        "text": {"tag": "plain_text", "content": text},
        "type": style,
        "value": value,
    }


def select_menu(placeholder: str, value: Dict[str, Any], options: Iterable[Tuple[str, str]]) -> Element:
    """Static select menu; ``options`` are ``(label, value)`` pairs."""
    return {
        "tag": "select_static",
        "placeholder": {"tag": "plain_text", "content": placeholder},
        "value": value,
        "options": [
            {"text": {"tag": "plain_text", "content": label}, "value": option}
            for label, option in options
        ],
    }


def actions(items: Sequence[Element], layout: str = "flow") -> Element:
    return {"tag": "action", "layout": layout, "actions": list(items)}


def markdown_with_button(content: str, extra: Element) -> Element:
    element = markdown(content)
    element["extra"] = extra
    return element


def card(*elements: Optional[Element], title: Optional[str] = None, template: str = "blue",
         update_multi: bool = False) -> Card:
    """Assemble a card; ``None`` elements are skipped."""
    document: Card = {
        "config": {"wide_screen_mode": False, "enable_forward": True, "update_multi": update_multi},
        "elements": [element for element in elements if element is not None],
    }
    if title is not None:
        document["header"] = header(title, template)
    return document


def action_value(kind: CardKind, session_id: str, value: Any = CANCEL, msg_id: Optional[str] = None) -> Dict[str, Any]:
    """Payload echoed back by the platform when a button or menu is used."""
    payload = {
        "value": value,
        "kind": kind.value,
        "chatType": USER_CHAT_TYPE,
        "sessionId": session_id,
    }
    if msg_id is not None:
        payload["msgId"] = msg_id
    return payload


def _double_check(kind: CardKind, session_id: str, confirm_text: str) -> Element:
    return actions(
        [
            button(confirm_text, action_value(kind, session_id, CONFIRM), "danger"),
            button("Let me think", action_value(kind, session_id, CANCEL)),
        ],
        layout="bisected",
    )


def pic_settings_menus(session_id: str) -> Element:
    resolutions = [PicResolution.R1024, PicResolution.R1792_TALL, PicResolution.R1792_WIDE]
    return actions(
        [
            select_menu(
                "Default Resolution",
                action_value(CardKind.PIC_RESOLUTION, session_id, msg_id=session_id),
                [(res.value, res.value) for res in resolutions],
            ),
            select_menu(
                "Style",
                action_value(CardKind.PIC_STYLE, session_id, msg_id=session_id),
                [("Vivid Style", PicStyle.VIVID.value), ("Natural Style", PicStyle.NATURAL.value)],
            ),
        ]
    )


def vision_detail_menu(session_id: str) -> Element:
    return actions(
        [
            select_menu(
                "Select image resolution, default is low",
                action_value(CardKind.VISION_STYLE, session_id, msg_id=session_id),
                [("High", VisionDetail.HIGH.value), ("Low", VisionDetail.LOW.value)],
            )
        ],
        layout="bisected",
    )


# -- streaming / chat -------------------------------------------------------

def _topic_title(new_topic: bool) -> str:
    return NEW_TOPIC_TITLE if new_topic else OLD_TOPIC_TITLE


def processing_card(new_topic: bool) -> Card:
    return card(note(PROCESSING_NOTE), title=_topic_title(new_topic), update_multi=True)


def update_card(answer: str, new_topic: bool) -> Card:
    return card(plain_text(answer), note(GENERATING_NOTE), title=_topic_title(new_topic), update_multi=True)


def final_card(answer: str, new_topic: bool) -> Card:
    return card(plain_text(answer), note(COMPLETED_NOTE), title=_topic_title(new_topic), update_multi=True)


def topic_card(answer: str, new_topic: bool) -> Card:
    return card(plain_text(answer), note(TOPIC_REMINDER), title=_topic_title(new_topic))


# -- commands ---------------------------------------------------------------

def clear_check_card(session_id: str) -> Card:
    return card(
        markdown("Are you sure you want to clear the conversation context?"),
        note(FRESH_START_NOTE),
        _double_check(CardKind.CLEAR, session_id, "Confirm Clear"),
        title="🆑 Bot Reminder",
    )


def clear_done_card() -> Card:
    return card(
        markdown("Context information for this topic has been deleted"),
        note("We can start a brand new topic, feel free to continue chatting with me"),
        title="🆑 Bot Reminder",
        template="grey",
    )


def context_kept_card(title: str = "🎒 Bot Reminder") -> Card:
    return card(
        markdown("Context information for this topic is still retained"),
        note(KEEP_CONTEXT_NOTE),
        title=title,
        template="green",
    )


def image_mode_check_card(session_id: str) -> Card:
    """Ask what to do with an image received outside the image modes."""
    return card(
        markdown("Image detected, enter image analysis mode or image creation mode?"),
        note(FRESH_START_NOTE),
        actions(
            [
                button("Analyze Image", action_value(CardKind.VISION_MODE_CHANGE, session_id, CONFIRM), "primary"),
                button("Create Variations", action_value(CardKind.PIC_MODE_CHANGE, session_id, CONFIRM), "danger"),
                button("Let me think", action_value(CardKind.VISION_MODE_CHANGE, session_id, CANCEL)),
            ]
        ),
        title="🕵️ Bot Reminder",
    )


def pic_instruction_card(session_id: str) -> Card:
    return card(
        pic_settings_menus(session_id),
        note("Reminder: Reply with text or images to let AI generate related pictures."),
        title="🖼️ Entered Image Creation Mode",
    )


def vision_instruction_card(session_id: str) -> Card:
    return card(
        vision_detail_menu(session_id),
        note("Reminder: Reply with images to let the LLM analyze the image content with you."),
        title="🕵️️ Entered Image Analysis Mode",
    )


def vision_result_card(content: str) -> Card:
    return card(
        plain_text(content),
        note("Let the LLM analyze the image content with you~"),
        title="🕵️ Image Analysis Result",
    )


def system_instruction_card(content: str) -> Card:
    return card(plain_text(content), note(FRESH_START_NOTE), title="🥷  Entered Role-Playing Mode", template="indigo")


def image_card(image_key: str, session_id: str, msg_id: str, prompt: str) -> Card:
    """Generated picture with a button asking for another one from the same prompt."""
    return card(
        image(image_key),
        split_line(),
        actions([button("One More", action_value(CardKind.PIC_TEXT_MORE, session_id, prompt, msg_id), "primary")]),
    )


def variation_card(image_key: str, session_id: str, msg_id: str) -> Card:
    """Picture variation with a button asking for another variation of it."""
    return card(
        image(image_key),
        split_line(),
        actions([button("One More", action_value(CardKind.PIC_VAR_MORE, session_id, image_key, msg_id), "primary")]),
    )


def balance_card(total_granted: float, total_used: float, total_available: float,
                 effective_at: str, expires_at: str) -> Card:
    return card(
        markdown(f"Total Quota: {total_granted:.2f}$"),
        markdown(f"Used Quota: {total_used:.2f}$"),
        markdown(f"Available Quota: {total_available:.2f}$"),
        note(f"Validity Period: {effective_at} - {expires_at}"),
        title="🎰️ Balance Query",
    )


def role_tags_card(session_id: str, tags: Sequence[str]) -> Card:
    return card(
        actions(
            [
                select_menu(
                    "Select Role Category",
                    action_value(CardKind.ROLE_TAGS_CHOOSE, session_id, msg_id=session_id),
                    [(tag, tag) for tag in tags],
                )
            ]
        ),
        note("Reminder: Select the role category so we can recommend more related roles for you."),
        title="🛖 Please Select Role Category",
        template="indigo",
    )


def role_list_card(session_id: str, tag: str, titles: Sequence[str]) -> Card:
    return card(
        actions(
            [
                select_menu(
                    "View Built-in Roles",
                    action_value(CardKind.ROLE_CHOOSE, session_id, msg_id=session_id),
                    [(title, title) for title in titles],
                )
            ]
        ),
        note("Reminder: Select a built-in scenario to quickly enter role-playing mode."),
        title=f"🛖 Role List - {tag}",
        template="indigo",
    )


def ai_mode_card(session_id: str, mode_names: Sequence[str] = AI_MODE_NAMES) -> Card:
    return card(
        actions(
            [
                select_menu(
                    "Select Mode",
                    action_value(CardKind.AI_MODE_CHOOSE, session_id, msg_id=session_id),
                    [(name, name) for name in mode_names],
                )
            ]
        ),
        note("Reminder: Select a built-in mode to help AI better understand your needs."),
        title="🤖 Divergent Mode Selection",
        template="indigo",
    )


def ai_mode_selected_card(mode_name: str) -> Card:
    return card(
        markdown(f"Selected divergent mode: **{mode_name}**"),
        note("The AI mode has been updated. You can continue chatting."),
        title="Divergent Mode Selection",
        template="indigo",
    )


HELP_ITEMS: List[str] = [
    "🤖 **Divergent Mode Selection**\nReply with *ai mode* or */ai_mode*",
    "🛖 **Built-in Role List**\nReply with *roles* or */roles*",
    "🥷 **Role-Playing Mode**\nReply with *role play* or */system* + space + role info",
    "🎤 **AI Voice Chat**\nDirectly send voice messages in private chat mode",
    "🎨 **Image Creation Mode**\nReply with *picture* or */picture*",
    "🕵️ **Image Analysis Mode**\nReply with *vision* or */vision*",
    "🎰 **Token Balance Query**\nReply with *balance* or */balance*",
    "🎰 **Continuous Dialogue & Multi-Topic Mode**\nClick the dialogue box to reply and maintain "
    "topic continuity. Meanwhile, ask separately to start a new topic",
    "🎒 **Need More Help?**\nReply with *help* or */help*",
]


def help_card(session_id: str) -> Card:
    elements: List[Element] = [
        markdown("**🤠 Hello! I'm an intelligent assistant based on OpenAI!**"),
        split_line(),
        markdown_with_button(
            "** 🆑 Clear Topic Context**\nReply with *clear* or */clear*",
            button("Clear Now", action_value(CardKind.CLEAR, session_id, CONFIRM), "danger"),
        ),
    ]
    for item in HELP_ITEMS:
        elements.append(split_line())
        elements.append(markdown(item))
    return card(*elements, title="🎒 Need Help?")
